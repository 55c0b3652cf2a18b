"""
Promotion services for Bistro Platform.
Business logic for promotion eligibility, discount calculation and redemption.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count, ProtectedError, Q, Sum
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from .config import QuoteOrdering, StackingPolicy, get_quote_ordering, get_stacking_policy
from .exceptions import (
    InvalidPromotionTypeError,
    PersistenceError,
    PromotionNotFoundError,
    UsageLimitExceededError,
)
from .models import DiscountType, Promotion, PromotionData, PromotionUsage

logger = logging.getLogger(__name__)


# ===============================================================================
# Constants
# ===============================================================================

CENT = Decimal("0.01")
ZERO = Decimal("0")

EDITABLE_FIELDS = (
    "name",
    "description",
    "discount_type",
    "discount_value",
    "min_order_amount",
    "max_discount",
    "start_date",
    "end_date",
    "applicable_categories",
    "applicable_items",
    "usage_limit",
)
REQUIRED_FIELDS = ("name", "discount_type", "discount_value", "start_date", "end_date")

# Malformed stored promotion data: the promotion is skipped, the rest of the batch continues.
# Errors in caller arguments are not listed and propagate.
PROMOTION_DATA_ERRORS = (InvalidPromotionTypeError, ValidationError, InvalidOperation)


def to_decimal(value: Any) -> Decimal:
    """Convert via str() so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Any) -> Decimal:
    """Round to cents (half-up) and floor at zero."""
    return max(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP), ZERO)


def to_day(as_of: datetime.date | None) -> datetime.date:
    """Calendar day of as_of in the project time zone, today when omitted."""
    if as_of is None:
        return timezone.localdate()
    if isinstance(as_of, datetime.datetime):
        return timezone.localdate(as_of) if timezone.is_aware(as_of) else as_of.date()
    return as_of


def normalize_customer_id(customer_id: Any) -> str | None:
    """Empty customer ids mean an anonymous order."""
    if customer_id is None or customer_id == "":
        return None
    return str(customer_id)


# ===============================================================================
# Data Classes
# ===============================================================================


@dataclass(frozen=True)
class OrderLine:
    """One line of the order being priced."""

    item_id: Any
    category_id: Any
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class OrderContext:
    """
    Everything the engine needs to know about an order.

    Attributes:
        order_amount: Subtotal before any discount.
        items: Order lines in the order they were added.
        customer_id: Identity of the ordering customer, if known. Scopes usage limits.
        order_id: Identifier of the order, if already assigned.
    """

    order_amount: Decimal
    items: tuple[OrderLine, ...] = ()
    customer_id: str | None = None
    order_id: str | None = None

    @classmethod
    def from_items(
        cls,
        items: Iterable[Mapping[str, Any]],
        order_amount: Any = None,
        customer_id: Any = None,
        order_id: Any = None,
    ) -> OrderContext:
        """
        Build a context from plain item mappings.

        Accepts ``item_id`` or ``food_id`` and ``unit_price`` or ``price`` keys.
        When order_amount is omitted the subtotal is summed from the lines.
        """
        lines = tuple(
            OrderLine(
                item_id=row.get("item_id", row.get("food_id")),
                category_id=row.get("category_id"),
                quantity=int(row.get("quantity", 1)),
                unit_price=to_decimal(row.get("unit_price", row.get("price", 0))),
            )
            for row in items
        )
        if order_amount is None:
            order_amount = sum((line.unit_price * line.quantity for line in lines), ZERO)
        return cls(
            order_amount=to_decimal(order_amount),
            items=lines,
            customer_id=normalize_customer_id(customer_id),
            order_id=str(order_id) if order_id is not None else None,
        )


@dataclass
class EligibilityResult:
    """
    Result of checking one promotion against an order.

    Attributes:
        is_eligible: Whether the promotion applies.
        reason_code: Machine-readable reason when it does not.
            Codes: NOT_ACTIVE, MIN_ORDER_NOT_MET, USAGE_LIMIT_REACHED,
            NO_APPLICABLE_ITEMS, NO_APPLICABLE_CATEGORIES, MALFORMED_PROMOTION
        message: Human-readable explanation.
    """

    is_eligible: bool
    reason_code: str = ""
    message: str = ""


@dataclass(frozen=True)
class PromotionQuote:
    """An eligible promotion with the discount it would give this order."""

    promotion: Promotion
    discount_amount: Decimal


@dataclass(frozen=True)
class UsageStatistics:
    promotion_id: int
    usage_count: int
    total_discount_given: Decimal


@dataclass(frozen=True)
class PromotionStatistics:
    """Reporting row for one promotion."""

    promotion_id: int
    name: str
    discount_type: str
    discount_value: Decimal
    usage_count: int
    total_discount_given: Decimal


# ===============================================================================
# Promotion Catalog
# ===============================================================================


class PromotionCatalog:
    """
    Read and management access to promotion definitions.
    Owns no discount computation.
    """

    @classmethod
    def list_active_promotions(cls, as_of: datetime.date) -> list[Promotion]:
        """Promotions whose validity window contains as_of, newest first."""
        try:
            day = to_day(as_of)
            return list(Promotion.objects.filter(start_date__lte=day, end_date__gte=day))
        except DatabaseError as exc:
            raise PersistenceError("Could not load active promotions") from exc

    @classmethod
    def list_promotions(cls, active_only: bool = True, as_of: datetime.date | None = None) -> list[Promotion]:
        if active_only:
            return cls.list_active_promotions(to_day(as_of))
        try:
            return list(Promotion.objects.all())
        except DatabaseError as exc:
            raise PersistenceError("Could not load promotions") from exc

    @classmethod
    def get_promotion(cls, promotion_id: Any) -> Promotion:
        try:
            return Promotion.objects.get(pk=promotion_id)
        except (Promotion.DoesNotExist, ValueError, TypeError):
            raise PromotionNotFoundError(promotion_id) from None
        except DatabaseError as exc:
            raise PersistenceError(f"Could not load promotion {promotion_id}") from exc

    @classmethod
    def create_promotion(cls, data: PromotionData) -> Promotion:
        """
        Create a promotion from field values.

        Omitted optional fields take the model defaults (no minimum, uncapped,
        unrestricted, unlimited).

        Raises:
            InvalidPromotionTypeError: discount_type is not a known model.
            ValidationError: any other field is missing or invalid.
        """
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValidationError({name: "This field is required." for name in missing})

        promotion = Promotion()
        cls._apply_data(promotion, data)
        return cls._save(promotion)

    @classmethod
    def update_promotion(cls, promotion_id: Any, data: PromotionData) -> Promotion:
        """Update the given fields of an existing promotion; other fields keep their values."""
        promotion = cls.get_promotion(promotion_id)
        cls._apply_data(promotion, data)
        return cls._save(promotion)

    @classmethod
    def delete_promotion(cls, promotion_id: Any) -> Result[None, str]:
        """Delete a promotion that was never redeemed."""
        promotion = cls.get_promotion(promotion_id)
        if UsageLedger.count_usage(promotion.pk) > 0:
            return Err("Cannot delete promotion that has been used")

        try:
            with transaction.atomic():
                promotion.delete()
        except ProtectedError:
            return Err("Cannot delete promotion that has been used")
        except DatabaseError as exc:
            raise PersistenceError(f"Could not delete promotion {promotion_id}") from exc

        logger.info("Promotion deleted: %s", promotion_id, extra={"promotion_id": promotion_id})
        return Ok(None)

    @classmethod
    def _apply_data(cls, promotion: Promotion, data: PromotionData) -> None:
        unknown = sorted(set(data) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError({name: "Unknown promotion field." for name in unknown})

        for name, value in data.items():
            if name == "discount_type":
                value = DiscountType.parse(value).value
            setattr(promotion, name, value)

    @classmethod
    def _save(cls, promotion: Promotion) -> Promotion:
        promotion.full_clean()
        try:
            promotion.save()
        except DatabaseError as exc:
            raise PersistenceError(f"Could not save promotion {promotion.name!r}") from exc
        return promotion


# ===============================================================================
# Usage Ledger
# ===============================================================================


class UsageLedger:
    """
    Append-only record of promotion redemptions.
    Source of truth for usage limits and reporting.
    """

    @classmethod
    def _scoped(cls, promotion_id: int, customer_id: Any = None) -> Any:
        queryset = PromotionUsage.objects.filter(promotion_id=promotion_id)
        customer_key = normalize_customer_id(customer_id)
        if customer_key is not None:
            queryset = queryset.filter(customer_id=customer_key)
        return queryset

    @classmethod
    def count_usage(cls, promotion_id: int, customer_id: Any = None) -> int:
        """
        Count redemptions of a promotion.

        With a customer_id only that customer's redemptions count;
        without one every redemption counts.
        """
        try:
            return cls._scoped(promotion_id, customer_id).count()
        except DatabaseError as exc:
            raise PersistenceError(f"Could not count usage for promotion {promotion_id}") from exc

    @classmethod
    def record(
        cls,
        promotion_id: int,
        order_id: Any,
        customer_id: Any,
        discount_amount: Decimal,
    ) -> PromotionUsage:
        """Append a usage row stamped with the current time."""
        try:
            return PromotionUsage.objects.create(
                promotion_id=promotion_id,
                order_id=str(order_id),
                customer_id=normalize_customer_id(customer_id),
                discount_amount=discount_amount,
                used_at=timezone.now(),
            )
        except DatabaseError as exc:
            raise PersistenceError(f"Could not record usage for promotion {promotion_id}") from exc

    @classmethod
    def statistics(
        cls,
        promotion_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ) -> UsageStatistics:
        """Usage count and total discount for one promotion, optionally within a date range."""
        queryset = PromotionUsage.objects.filter(promotion_id=promotion_id)
        period = cls._period_filter(start_date, end_date)
        if period:
            queryset = queryset.filter(period)
        try:
            totals = queryset.aggregate(usage_count=Count("id"), total=Sum("discount_amount"))
        except DatabaseError as exc:
            raise PersistenceError(f"Could not aggregate usage for promotion {promotion_id}") from exc

        return UsageStatistics(
            promotion_id=promotion_id,
            usage_count=totals["usage_count"],
            total_discount_given=to_money(totals["total"] or ZERO),
        )

    @classmethod
    def report(
        cls,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ) -> list[PromotionStatistics]:
        """Per-promotion usage totals, largest total discount first."""
        period = cls._period_filter(start_date, end_date, prefix="usages__") or None
        queryset = Promotion.objects.annotate(
            usage_count=Count("usages", filter=period),
            total_discount=Sum("usages__discount_amount", filter=period),
        )
        try:
            rows = [
                PromotionStatistics(
                    promotion_id=promotion.pk,
                    name=promotion.name,
                    discount_type=promotion.discount_type,
                    discount_value=promotion.discount_value,
                    usage_count=promotion.usage_count,
                    total_discount_given=to_money(promotion.total_discount or ZERO),
                )
                for promotion in queryset
            ]
        except DatabaseError as exc:
            raise PersistenceError("Could not build promotion usage report") from exc

        return sorted(rows, key=lambda row: row.total_discount_given, reverse=True)

    @staticmethod
    def _period_filter(
        start_date: datetime.date | None,
        end_date: datetime.date | None,
        prefix: str = "",
    ) -> Q:
        """
        Filter on used_at. Dates are whole calendar days in the project
        time zone; datetimes are compared exactly.
        """
        condition = Q()
        if start_date is not None:
            if isinstance(start_date, datetime.datetime):
                condition &= Q(**{f"{prefix}used_at__gte": start_date})
            else:
                condition &= Q(**{f"{prefix}used_at__date__gte": start_date})
        if end_date is not None:
            if isinstance(end_date, datetime.datetime):
                condition &= Q(**{f"{prefix}used_at__lte": end_date})
            else:
                condition &= Q(**{f"{prefix}used_at__date__lte": end_date})
        return condition


# ===============================================================================
# Eligibility Evaluator
# ===============================================================================


class EligibilityEvaluator:
    """
    Decides which catalog promotions apply to an order.
    Read-only: safe to call repeatedly and concurrently.
    """

    @classmethod
    def eligible(cls, order: OrderContext, as_of: datetime.date | None = None) -> list[Promotion]:
        """Active promotions passing every check, in catalog order."""
        as_of = to_day(as_of)
        promotions = PromotionCatalog.list_active_promotions(as_of)
        return [promotion for promotion in promotions if cls._safe_check(promotion, order, as_of).is_eligible]

    @classmethod
    def check(  # noqa: PLR0911
        cls,
        promotion: Promotion,
        order: OrderContext,
        as_of: datetime.date | None = None,
    ) -> EligibilityResult:
        """Apply the eligibility checks in order and report the first failure."""
        as_of = to_day(as_of)

        if not promotion.is_active_on(as_of):
            return EligibilityResult(
                is_eligible=False,
                reason_code="NOT_ACTIVE",
                message=f"Promotion runs from {promotion.start_date} to {promotion.end_date}",
            )

        min_order_amount = to_decimal(promotion.min_order_amount)
        if to_decimal(order.order_amount) < min_order_amount:
            return EligibilityResult(
                is_eligible=False,
                reason_code="MIN_ORDER_NOT_MET",
                message=f"Minimum order of {min_order_amount:.2f} required",
            )

        if not promotion.is_unlimited:
            used = UsageLedger.count_usage(promotion.pk, order.customer_id)
            if used >= promotion.usage_limit:
                return EligibilityResult(
                    is_eligible=False,
                    reason_code="USAGE_LIMIT_REACHED",
                    message="Promotion usage limit reached",
                )

        item_ids = set(promotion.item_ids)
        if item_ids and not any(str(line.item_id) in item_ids for line in order.items):
            return EligibilityResult(
                is_eligible=False,
                reason_code="NO_APPLICABLE_ITEMS",
                message="No eligible items in order for this promotion",
            )

        category_ids = set(promotion.category_ids)
        if category_ids and not any(str(line.category_id) in category_ids for line in order.items):
            return EligibilityResult(
                is_eligible=False,
                reason_code="NO_APPLICABLE_CATEGORIES",
                message="No eligible categories in order for this promotion",
            )

        return EligibilityResult(is_eligible=True)

    @classmethod
    def _safe_check(cls, promotion: Promotion, order: OrderContext, as_of: datetime.date) -> EligibilityResult:
        try:
            return cls.check(promotion, order, as_of)
        except PROMOTION_DATA_ERRORS as exc:
            logger.warning(
                "Skipping malformed promotion %s: %s",
                promotion.pk,
                exc,
                extra={"promotion_id": promotion.pk, "error": str(exc)},
            )
            return EligibilityResult(is_eligible=False, reason_code="MALFORMED_PROMOTION", message=str(exc))


# ===============================================================================
# Discount Calculator
# ===============================================================================


class DiscountCalculator:
    """
    Computes the discount a promotion gives an order.
    Assumes the promotion is eligible; only the discount model is validated.
    """

    @classmethod
    def compute_discount(cls, promotion: Promotion, order: OrderContext) -> Decimal:
        """
        Calculate the discount, rounded to cents and never negative.

        Raises:
            InvalidPromotionTypeError: discount_type is not a known model.
        """
        kind = DiscountType.parse(promotion.discount_type)

        if kind is DiscountType.PERCENTAGE:
            discount = cls._percentage_discount(promotion, order)
        elif kind is DiscountType.FIXED:
            # Not limited to the order amount
            discount = to_decimal(promotion.discount_value)
        elif kind is DiscountType.BUY_ONE_GET_ONE:
            discount = cls._buy_one_get_one_discount(promotion, order)
        else:
            raise InvalidPromotionTypeError(promotion.discount_type)

        return to_money(discount)

    @classmethod
    def _percentage_discount(cls, promotion: Promotion, order: OrderContext) -> Decimal:
        discount = to_decimal(order.order_amount) * to_decimal(promotion.discount_value) / 100
        max_discount = to_decimal(promotion.max_discount)
        if max_discount > 0:
            discount = min(discount, max_discount)
        return discount

    @classmethod
    def _buy_one_get_one_discount(cls, promotion: Promotion, order: OrderContext) -> Decimal:
        """One free unit per pair of matching units; the odd unit pays full price."""
        discount = ZERO
        for item_id in dict.fromkeys(promotion.item_ids):
            for line in order.items:
                if str(line.item_id) == item_id and line.quantity >= 2:
                    discount += to_decimal(line.unit_price) * (int(line.quantity) // 2)
        return discount


# ===============================================================================
# Promotion Service
# ===============================================================================


class PromotionService:
    """
    Entry point for checkout flows: quote, redeem, report.
    """

    @classmethod
    def quote(
        cls,
        order: OrderContext,
        as_of: datetime.date | None = None,
        ordering: QuoteOrdering | None = None,
    ) -> list[PromotionQuote]:
        """
        Eligible promotions with the discount each would give.

        Sorted descending by the configured discount_value by default (ties keep
        catalog order); QuoteOrdering.DISCOUNT_AMOUNT ranks by computed discount.
        """
        ordering = ordering or get_quote_ordering()

        quotes = []
        for promotion in EligibilityEvaluator.eligible(order, as_of):
            try:
                discount = DiscountCalculator.compute_discount(promotion, order)
            except PROMOTION_DATA_ERRORS as exc:
                logger.warning(
                    "Skipping promotion %s, discount could not be computed: %s",
                    promotion.pk,
                    exc,
                    extra={"promotion_id": promotion.pk, "error": str(exc)},
                )
                continue
            quotes.append(PromotionQuote(promotion=promotion, discount_amount=discount))

        if ordering is QuoteOrdering.DISCOUNT_AMOUNT:
            return sorted(quotes, key=lambda quote: quote.discount_amount, reverse=True)
        return sorted(quotes, key=lambda quote: to_decimal(quote.promotion.discount_value), reverse=True)

    @classmethod
    def select(
        cls,
        quotes: Iterable[PromotionQuote],
        policy: StackingPolicy | None = None,
    ) -> list[PromotionQuote]:
        """
        Pick the quotes a checkout applies together.

        BEST_OF_ONE keeps the single largest computed discount (earliest wins ties);
        STACK_ALL keeps every quote.
        """
        policy = policy or get_stacking_policy()
        quotes = list(quotes)
        if policy is StackingPolicy.STACK_ALL or not quotes:
            return quotes
        return [max(quotes, key=lambda quote: quote.discount_amount)]

    @classmethod
    def redeem(
        cls,
        promotion_id: Any,
        order_id: Any,
        customer_id: Any,
        discount_amount: Any,
    ) -> PromotionUsage:
        """
        Commit a promotion against an order.

        The usage count is re-checked and the usage row appended in one
        transaction holding a row lock on the promotion, so concurrent callers
        cannot exceed the usage limit.

        Raises:
            ValueError: discount_amount is negative or not a finite number.
            PromotionNotFoundError: promotion_id does not exist.
            UsageLimitExceededError: the limit is already reached for this scope.
            PersistenceError: the database failed; nothing was recorded.
        """
        try:
            amount = to_decimal(discount_amount)
        except InvalidOperation:
            raise ValueError(f"discount_amount is not a number: {discount_amount!r}") from None
        if not amount.is_finite():
            raise ValueError(f"discount_amount must be finite: {discount_amount!r}")
        if amount < 0:
            raise ValueError("discount_amount cannot be negative")
        amount = to_money(amount)

        try:
            with transaction.atomic():
                try:
                    promotion = Promotion.objects.select_for_update().get(pk=promotion_id)
                except (Promotion.DoesNotExist, ValueError, TypeError):
                    raise PromotionNotFoundError(promotion_id) from None

                if not promotion.is_unlimited:
                    used = UsageLedger.count_usage(promotion.pk, customer_id)
                    if used >= promotion.usage_limit:
                        logger.warning(
                            "Promotion %s redemption rejected for order %s: limit %d reached",
                            promotion.pk,
                            order_id,
                            promotion.usage_limit,
                            extra={
                                "promotion_id": promotion.pk,
                                "order_id": str(order_id),
                                "customer_id": normalize_customer_id(customer_id),
                                "usage_count": used,
                            },
                        )
                        raise UsageLimitExceededError(
                            promotion.pk, normalize_customer_id(customer_id), promotion.usage_limit
                        )

                usage = UsageLedger.record(promotion.pk, order_id, customer_id, amount)
        except DatabaseError as exc:
            raise PersistenceError(f"Could not redeem promotion {promotion_id}") from exc

        logger.info(
            "Promotion %s redeemed on order %s for %s",
            promotion.pk,
            order_id,
            amount,
            extra={
                "promotion_id": promotion.pk,
                "order_id": str(order_id),
                "customer_id": normalize_customer_id(customer_id),
                "discount_amount": str(amount),
                "usage_id": usage.pk,
            },
        )
        return usage

    @classmethod
    def usage_statistics(
        cls,
        promotion_id: Any,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ) -> UsageStatistics:
        promotion = PromotionCatalog.get_promotion(promotion_id)
        return UsageLedger.statistics(promotion.pk, start_date, end_date)
