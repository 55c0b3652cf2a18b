"""
Signal handlers for Promotions app.
Logs promotion lifecycle and redemption events for the audit trail.
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Any

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import Promotion, PromotionUsage

logger = logging.getLogger(__name__)

TRACKED_PROMOTION_FIELDS = (
    "discount_type",
    "discount_value",
    "min_order_amount",
    "max_discount",
    "start_date",
    "end_date",
    "usage_limit",
)


# ===============================================================================
# Helper Functions
# ===============================================================================


def _serialize_value(value: Any) -> Any:
    """Serialize a value for structured log output."""
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def get_model_changes(instance: Any, fields: tuple[str, ...]) -> tuple[dict, dict]:
    """Get old and new values for fields that changed since the pre_save snapshot."""
    snapshot = getattr(instance, "_old_values", None)
    if snapshot is None:
        return {}, {}

    old_values = {}
    new_values = {}
    for field in fields:
        old_value = snapshot.get(field)
        new_value = getattr(instance, field, None)
        if old_value != new_value:
            old_values[field] = _serialize_value(old_value)
            new_values[field] = _serialize_value(new_value)

    return old_values, new_values


# ===============================================================================
# Promotion Signals
# ===============================================================================


@receiver(pre_save, sender=Promotion)
def promotion_pre_save(sender: type, instance: Promotion, **kwargs: Any) -> None:
    """Store old values before promotion save."""
    if instance.pk:
        old_values = Promotion.objects.filter(pk=instance.pk).values(*TRACKED_PROMOTION_FIELDS).first()
        if old_values is not None:
            instance._old_values = old_values  # type: ignore[attr-defined]


@receiver(post_save, sender=Promotion)
def promotion_post_save(
    sender: type,
    instance: Promotion,
    created: bool,
    **kwargs: Any,
) -> None:
    """Log promotion creation and updates."""
    if created:
        logger.info(
            "Promotion created: %s",
            instance.name,
            extra={
                "promotion_id": instance.pk,
                "discount_type": instance.discount_type,
                "discount_value": str(instance.discount_value),
                "start_date": _serialize_value(instance.start_date),
                "end_date": _serialize_value(instance.end_date),
                "usage_limit": instance.usage_limit,
            },
        )
        return

    old_values, new_values = get_model_changes(instance, TRACKED_PROMOTION_FIELDS)
    if old_values:
        logger.info(
            "Promotion updated: %s (%s)",
            instance.name,
            ", ".join(sorted(new_values)),
            extra={"promotion_id": instance.pk, "old_values": old_values, "new_values": new_values},
        )


# ===============================================================================
# Usage Signals
# ===============================================================================


@receiver(post_save, sender=PromotionUsage)
def usage_post_save(
    sender: type,
    instance: PromotionUsage,
    created: bool,
    **kwargs: Any,
) -> None:
    """Log usage ledger appends."""
    if created:
        logger.debug(
            "Usage recorded: promotion %s order %s",
            instance.promotion_id,
            instance.order_id,
            extra={
                "promotion_id": instance.promotion_id,
                "usage_id": instance.pk,
                "discount_amount": str(instance.discount_amount),
            },
        )
