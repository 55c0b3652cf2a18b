# ===============================================================================
# PYTEST CONFIGURATION FOR BISTRO PLATFORM
# ===============================================================================
"""
Global test configuration for Bistro Platform.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- Shared builders live in tests/factories/

Test Discovery:
- Run specific app tests: pytest tests/promotions/
- Run all tests: pytest tests/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')

    # Configure Django
    django.setup()

# ===============================================================================
# PYTEST FIXTURES
# ===============================================================================

import pytest  # noqa: E402

from apps.common.logging import clear_request_context  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_request_context():
    """Thread-local logging context must not leak between tests"""
    yield
    clear_request_context()

