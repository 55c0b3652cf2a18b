"""
Promotion models for Bistro Platform.
Time-boxed discount rules and the append-only ledger of their redemptions.

Supports:
- Discount models (percentage with optional cap, fixed amount, buy-one-get-one)
- Minimum order amount
- Item and category scoping
- Usage limits (global, or per customer when the order names one)
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, TypedDict

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .exceptions import ImmutableRecordError, InvalidPromotionTypeError

# ===============================================================================
# Constants and TypedDicts
# ===============================================================================

MAX_DISCOUNT_PERCENT = Decimal("100")
MONEY_MAX_DIGITS = 10
MONEY_DECIMAL_PLACES = 2


class DiscountType(Enum):
    """Closed set of discount models a promotion can use"""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    BUY_ONE_GET_ONE = "buy_one_get_one"

    @classmethod
    def parse(cls, value: Any) -> DiscountType:
        """Map a stored value to a discount model, rejecting anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidPromotionTypeError(value) from None


class PromotionData(TypedDict, total=False):
    """Field values accepted by catalog create/update operations."""

    name: str
    description: str
    discount_type: str
    discount_value: Decimal | int | float | str
    min_order_amount: Decimal | int | float | str
    max_discount: Decimal | int | float | str
    start_date: datetime.date | str
    end_date: datetime.date | str
    applicable_categories: list[Any]
    applicable_items: list[Any]
    usage_limit: int


def _normalize_ids(values: Any) -> list[str]:
    """Identifiers are compared in their string form so 42 and "42" match."""
    if not values:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValidationError("Scope must be a list of identifiers")
    return [str(value) for value in values]


# ===============================================================================
# Promotion Model
# ===============================================================================


class Promotion(models.Model):
    """
    A time-boxed, conditionally-scoped discount rule.
    Immutable after creation except through catalog updates.
    """

    name = models.CharField(max_length=200, help_text=_("Display name"))
    description = models.TextField(blank=True, help_text=_("Description shown to customers"))

    DISCOUNT_TYPES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (DiscountType.PERCENTAGE.value, _("Percentage Discount")),
        (DiscountType.FIXED.value, _("Fixed Amount Discount")),
        (DiscountType.BUY_ONE_GET_ONE.value, _("Buy One Get One")),
    )
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPES, default=DiscountType.PERCENTAGE.value)

    # Interpretation depends on discount_type: percent for percentage,
    # currency amount for fixed, unused for buy_one_get_one
    discount_value = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        default=Decimal("0"),
        validators=[MinValueValidator(0)],
    )
    min_order_amount = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        default=Decimal("0"),
        validators=[MinValueValidator(0)],
        help_text=_("Order subtotal required to qualify (0 = no minimum)"),
    )
    max_discount = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        default=Decimal("0"),
        validators=[MinValueValidator(0)],
        help_text=_("Cap for percentage discounts (0 = uncapped)"),
    )

    # Validity window, inclusive on both ends
    start_date = models.DateField(help_text=_("First day the promotion applies"))
    end_date = models.DateField(help_text=_("Last day the promotion applies"))

    # Scope (empty list = unrestricted)
    applicable_categories = models.JSONField(default=list, blank=True)
    applicable_items = models.JSONField(default=list, blank=True)

    usage_limit = models.PositiveIntegerField(default=0, help_text=_("Maximum redemptions (0 = unlimited)"))

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "promotions"
        verbose_name = _("Promotion")
        verbose_name_plural = _("Promotions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at", "-id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["start_date", "end_date"], name="idx_promotion_window"),
        )

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        """Validate promotion configuration."""
        super().clean()
        DiscountType.parse(self.discount_type)
        # Field-level errors leave raw values behind; only compare cleaned ones
        if (
            self.kind is DiscountType.PERCENTAGE
            and isinstance(self.discount_value, Decimal)
            and self.discount_value > MAX_DISCOUNT_PERCENT
        ):
            raise ValidationError({"discount_value": "Percentage must be between 0 and 100"})
        if (
            isinstance(self.start_date, datetime.date)
            and isinstance(self.end_date, datetime.date)
            and self.end_date < self.start_date
        ):
            raise ValidationError({"end_date": "end_date must not be before start_date"})
        self.applicable_categories = _normalize_ids(self.applicable_categories)
        self.applicable_items = _normalize_ids(self.applicable_items)

    @property
    def kind(self) -> DiscountType:
        """Discount model as an enum member."""
        return DiscountType.parse(self.discount_type)

    @property
    def item_ids(self) -> list[str]:
        return _normalize_ids(self.applicable_items)

    @property
    def category_ids(self) -> list[str]:
        return _normalize_ids(self.applicable_categories)

    @property
    def is_unlimited(self) -> bool:
        return self.usage_limit == 0

    def is_active_on(self, day: datetime.date) -> bool:
        """Check if the validity window contains the given calendar day."""
        return self.start_date <= day <= self.end_date

    @property
    def is_active(self) -> bool:
        return self.is_active_on(timezone.localdate())


# ===============================================================================
# Promotion Usage Model
# ===============================================================================


class PromotionUsage(models.Model):
    """
    One redemption of a promotion against an order.

    Rows are immutable once created: they are the audit trail and the
    source of truth for usage-limit enforcement.
    """

    promotion = models.ForeignKey(
        Promotion,
        on_delete=models.PROTECT,
        related_name="usages",
        help_text=_("The promotion that was redeemed"),
    )
    order_id = models.CharField(max_length=64, help_text=_("Order the redemption applies to"))
    customer_id = models.CharField(max_length=64, null=True, blank=True, help_text=_("Redeeming customer, if known"))
    discount_amount = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        validators=[MinValueValidator(0)],
    )
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "promotion_usage"
        verbose_name = _("Promotion Usage")
        verbose_name_plural = _("Promotion Usage")
        ordering: ClassVar[tuple[str, ...]] = ("-used_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["promotion", "customer_id", "used_at"], name="idx_usage_scope"),
            models.Index(fields=["used_at"], name="idx_usage_used_at"),
        )

    def __str__(self) -> str:
        return f"{self.promotion_id} on order {self.order_id}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ImmutableRecordError("Promotion usage records cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> Any:
        raise ImmutableRecordError("Promotion usage records cannot be deleted")
