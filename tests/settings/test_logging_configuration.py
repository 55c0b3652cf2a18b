"""
Tests for LOGGING configuration structure across environments.

Validates that formatters, filters, handlers and loggers are wired correctly
in each settings module, catching misconfiguration that would only surface at
runtime (e.g. handler referencing a non-existent formatter).
"""

from __future__ import annotations

import importlib
from typing import Any
from unittest.mock import patch

from django.test import SimpleTestCase


def _get_logging(module_path: str) -> dict[str, Any]:
    """Import a settings module and return its LOGGING dict.

    prod validates the secret key at import time; the test environment
    uses an insecure key, so validation is bypassed during import.
    """
    with patch("config.settings.base.validate_production_secret_key"):
        mod = importlib.import_module(module_path)
    return mod.LOGGING


class _LoggingStructureMixin:
    """Shared assertions for LOGGING dict validation."""

    logging_config: dict[str, Any]

    def assert_handler_wiring(self) -> None:
        """Every handler references an existing formatter and existing filters."""
        formatters = set(self.logging_config.get("formatters", {}).keys())
        filters = set(self.logging_config.get("filters", {}).keys())

        for name, handler in self.logging_config.get("handlers", {}).items():
            if "formatter" in handler:
                assert handler["formatter"] in formatters, (
                    f"Handler '{name}' references unknown formatter '{handler['formatter']}'"
                )
            for f in handler.get("filters", []):
                assert f in filters, f"Handler '{name}' references unknown filter '{f}'"

    def assert_logger_wiring(self) -> None:
        """Every logger references existing handlers."""
        handlers = set(self.logging_config.get("handlers", {}).keys())
        loggers = dict(self.logging_config.get("loggers", {}))
        loggers["root"] = self.logging_config.get("root", {})

        for name, logger_cfg in loggers.items():
            for h in logger_cfg.get("handlers", []):
                assert h in handlers, f"Logger '{name}' references unknown handler '{h}'"

    def assert_request_id_filter(self) -> None:
        filters = self.logging_config.get("filters", {})
        assert filters["add_request_id"]["()"] == "apps.common.logging.RequestIDFilter"


class DevLoggingTests(_LoggingStructureMixin, SimpleTestCase):
    """config.settings.dev LOGGING"""

    def setUp(self) -> None:
        self.logging_config = _get_logging("config.settings.dev")

    def test_wiring(self) -> None:
        self.assert_handler_wiring()
        self.assert_logger_wiring()
        self.assert_request_id_filter()

    def test_has_colorlog_formatter(self) -> None:
        fmt = self.logging_config["formatters"]["unified"]
        self.assertEqual(fmt["()"], "colorlog.ColoredFormatter")
        self.assertIn("{request_id}", fmt["format"])

    def test_apps_logger_debug(self) -> None:
        self.assertEqual(self.logging_config["loggers"]["apps"]["level"], "DEBUG")


class ProdLoggingTests(_LoggingStructureMixin, SimpleTestCase):
    """config.settings.prod LOGGING"""

    def setUp(self) -> None:
        self.logging_config = _get_logging("config.settings.prod")

    def test_wiring(self) -> None:
        self.assert_handler_wiring()
        self.assert_logger_wiring()
        self.assert_request_id_filter()

    def test_json_format(self) -> None:
        fmt = self.logging_config["formatters"]["json"]["format"]
        self.assertTrue(fmt.startswith("{"))
        self.assertIn("%(request_id)s", fmt)

    def test_file_handler_rotates(self) -> None:
        handler = self.logging_config["handlers"]["file"]
        self.assertEqual(handler["class"], "logging.handlers.RotatingFileHandler")


class TestLoggingTests(_LoggingStructureMixin, SimpleTestCase):
    """config.settings.test LOGGING"""

    def setUp(self) -> None:
        self.logging_config = _get_logging("config.settings.test")

    def test_wiring(self) -> None:
        self.assert_handler_wiring()
        self.assert_logger_wiring()
