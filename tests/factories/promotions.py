# ===============================================================================
# TEST FACTORIES FOR PROMOTIONS
# ===============================================================================
import datetime
from decimal import Decimal
from typing import Any

from apps.promotions.models import Promotion, PromotionUsage
from apps.promotions.services import OrderContext

AS_OF = datetime.date(2026, 3, 15)


def create_promotion(**overrides: Any) -> Promotion:
    """Create an active, unrestricted 10% promotion unless told otherwise."""
    values: dict[str, Any] = {
        'name': 'Spring Special',
        'discount_type': 'percentage',
        'discount_value': Decimal('10.00'),
        'start_date': AS_OF - datetime.timedelta(days=7),
        'end_date': AS_OF + datetime.timedelta(days=7),
    }
    values.update(overrides)
    return Promotion.objects.create(**values)


def create_usage(promotion: Promotion, order_id: str = 'ORD-1', customer_id: str | None = None,
                 discount_amount: Decimal = Decimal('1.00'), used_at: datetime.datetime | None = None) -> PromotionUsage:
    """Append a ledger row directly, bypassing limit checks."""
    values: dict[str, Any] = {
        'promotion': promotion,
        'order_id': order_id,
        'customer_id': customer_id,
        'discount_amount': discount_amount,
    }
    if used_at is not None:
        values['used_at'] = used_at
    return PromotionUsage.objects.create(**values)


def make_order(order_amount: Any = '25.00', items: tuple = (), customer_id: str | None = None,
               order_id: str | None = None) -> OrderContext:
    """Build an order context with a given subtotal."""
    return OrderContext(
        order_amount=Decimal(str(order_amount)),
        items=tuple(items),
        customer_id=customer_id,
        order_id=order_id,
    )
