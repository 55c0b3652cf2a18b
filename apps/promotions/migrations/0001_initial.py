# Generated manually for Promotions App - promotion catalog and usage ledger

import decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        # Promotion model
        migrations.CreateModel(
            name="Promotion",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(help_text="Display name", max_length=200)),
                (
                    "description",
                    models.TextField(blank=True, help_text="Description shown to customers"),
                ),
                (
                    "discount_type",
                    models.CharField(
                        choices=[
                            ("percentage", "Percentage Discount"),
                            ("fixed", "Fixed Amount Discount"),
                            ("buy_one_get_one", "Buy One Get One"),
                        ],
                        default="percentage",
                        max_length=20,
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "min_order_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0"),
                        help_text="Order subtotal required to qualify (0 = no minimum)",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "max_discount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0"),
                        help_text="Cap for percentage discounts (0 = uncapped)",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("start_date", models.DateField(help_text="First day the promotion applies")),
                ("end_date", models.DateField(help_text="Last day the promotion applies")),
                ("applicable_categories", models.JSONField(blank=True, default=list)),
                ("applicable_items", models.JSONField(blank=True, default=list)),
                (
                    "usage_limit",
                    models.PositiveIntegerField(default=0, help_text="Maximum redemptions (0 = unlimited)"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Promotion",
                "verbose_name_plural": "Promotions",
                "db_table": "promotions",
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["start_date", "end_date"], name="idx_promotion_window"),
                ],
            },
        ),
        # PromotionUsage model
        migrations.CreateModel(
            name="PromotionUsage",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "order_id",
                    models.CharField(help_text="Order the redemption applies to", max_length=64),
                ),
                (
                    "customer_id",
                    models.CharField(
                        blank=True,
                        help_text="Redeeming customer, if known",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("used_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "promotion",
                    models.ForeignKey(
                        help_text="The promotion that was redeemed",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usages",
                        to="promotions.promotion",
                    ),
                ),
            ],
            options={
                "verbose_name": "Promotion Usage",
                "verbose_name_plural": "Promotion Usage",
                "db_table": "promotion_usage",
                "ordering": ("-used_at",),
                "indexes": [
                    models.Index(fields=["promotion", "customer_id", "used_at"], name="idx_usage_scope"),
                    models.Index(fields=["used_at"], name="idx_usage_used_at"),
                ],
            },
        ),
    ]
