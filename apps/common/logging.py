"""
Logging infrastructure for Bistro Platform.

- Request context helpers: thread-local correlation data set by the caller
  (checkout flow, worker job) before invoking the engine
- RequestIDFilter: injects that context into every log record so the
  formatters in config.settings can print it

Usage:
    from apps.common.logging import set_request_id

    set_request_id("checkout-7f3a")
    PromotionService.redeem(...)  # log lines now carry [checkout-7f3a]
"""

from __future__ import annotations

import logging
import threading
from typing import Any

# Thread-local storage for request context
_request_context = threading.local()

CONTEXT_FIELDS = ("request_id", "customer_id", "order_id")


def set_request_id(request_id: str) -> None:
    """Set the current request ID in thread-local storage."""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_context, "request_id", None)


def clear_request_id() -> None:
    """Clear the request ID from thread-local storage."""
    _request_context.request_id = None


def set_request_context(**kwargs: Any) -> None:
    """Set request context for the current thread"""
    for key, value in kwargs.items():
        setattr(_request_context, key, value)


def get_request_context() -> dict[str, Any]:
    """Get request context for the current thread"""
    return {
        "request_id": getattr(_request_context, "request_id", "-"),
        "customer_id": getattr(_request_context, "customer_id", None),
        "order_id": getattr(_request_context, "order_id", None),
    }


def clear_request_context() -> None:
    """Clear request context for the current thread"""
    for attr in CONTEXT_FIELDS:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


class RequestIDFilter(logging.Filter):
    """
    Add request ID and context to log records.

    Values passed explicitly through ``extra=`` win over the thread-local ones.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add request_id attribute to log record"""
        if not hasattr(record, "request_id"):
            record.request_id = getattr(_request_context, "request_id", None) or "-"  # type: ignore[attr-defined]

        if not hasattr(record, "customer_id"):
            record.customer_id = getattr(_request_context, "customer_id", None)  # type: ignore[attr-defined]
        if not hasattr(record, "order_id"):
            record.order_id = getattr(_request_context, "order_id", None)  # type: ignore[attr-defined]

        return True
