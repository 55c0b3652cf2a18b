"""
Centralized promotions configuration for Bistro Platform.

Reads the PROMOTIONS settings dict with validated fallbacks so a typo in an
environment never changes engine behaviour silently.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, TypeVar

from django.conf import settings

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=Enum)


class QuoteOrdering(Enum):
    """How quote() ranks eligible promotions"""

    DISCOUNT_VALUE = "discount_value"  # raw configured value, legacy ranking
    DISCOUNT_AMOUNT = "discount_amount"  # computed discount for this order


class StackingPolicy(Enum):
    """How many quoted promotions a checkout may apply together"""

    BEST_OF_ONE = "best_of_one"
    STACK_ALL = "stack_all"


def _get_promotions_setting(key: str, default: Any) -> Any:
    return (getattr(settings, "PROMOTIONS", None) or {}).get(key, default)


def _get_choice(key: str, enum_cls: type[EnumT], default: EnumT) -> EnumT:
    """Get an enum member from settings, falling back to the default on bad input."""
    value = _get_promotions_setting(key, default.value)
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Invalid PROMOTIONS[%r]=%r, using %r", key, value, default.value)
        return default


def get_quote_ordering() -> QuoteOrdering:
    return _get_choice("QUOTE_ORDERING", QuoteOrdering, QuoteOrdering.DISCOUNT_VALUE)


def get_stacking_policy() -> StackingPolicy:
    return _get_choice("STACKING_POLICY", StackingPolicy, StackingPolicy.BEST_OF_ONE)
