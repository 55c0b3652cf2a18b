"""
Tests for the shared Result type.
"""

from django.test import SimpleTestCase

from apps.common.types import Err, Ok


class ResultTypeTests(SimpleTestCase):
    """Tests for Ok and Err."""

    def test_ok(self):
        result = Ok(5)

        self.assertTrue(result.is_ok())
        self.assertFalse(result.is_err())
        self.assertEqual(result.unwrap(), 5)
        self.assertEqual(result.unwrap_or(0), 5)
        self.assertEqual(result.map(lambda value: value * 2), Ok(10))
        with self.assertRaises(ValueError):
            result.unwrap_err()

    def test_err(self):
        result = Err("Cannot delete promotion that has been used")

        self.assertTrue(result.is_err())
        self.assertEqual(result.unwrap_or(None), None)
        self.assertIs(result.map(lambda value: value * 2), result)
        self.assertEqual(result.unwrap_err(), "Cannot delete promotion that has been used")
        with self.assertRaises(ValueError):
            result.unwrap()

    def test_map_failure_becomes_err(self):
        self.assertEqual(Ok(0).map(lambda value: 1 / value), Err("division by zero"))
