"""
Exceptions raised by the promotions engine.
"""

from __future__ import annotations

from typing import Any

from apps.common.types import BusinessError


class PromotionError(BusinessError):
    """Base exception for promotion engine errors"""


class InvalidPromotionTypeError(PromotionError):
    """An unrecognized discount model was encountered"""

    def __init__(self, discount_type: Any):
        self.discount_type = discount_type
        super().__init__(f"Unknown discount type: {discount_type!r}")


class UsageLimitExceededError(PromotionError):
    """Redemption attempted after the promotion usage limit was reached"""

    def __init__(self, promotion_id: int, customer_id: str | None, usage_limit: int):
        self.promotion_id = promotion_id
        self.customer_id = customer_id
        self.usage_limit = usage_limit
        scope = f"customer {customer_id}" if customer_id else "all customers"
        super().__init__(f"Promotion {promotion_id} reached its usage limit of {usage_limit} for {scope}")


class PromotionNotFoundError(PromotionError):
    """Referenced promotion does not exist"""

    def __init__(self, promotion_id: Any):
        self.promotion_id = promotion_id
        super().__init__(f"Promotion {promotion_id} not found")


class PersistenceError(PromotionError):
    """Backing store read or write failure"""


class ImmutableRecordError(PromotionError):
    """Attempt to modify or remove an append-only usage record"""
