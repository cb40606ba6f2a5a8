from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="MultiBuyDiscount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                (
                    "is_flat",
                    models.BooleanField(
                        default=False,
                        help_text="When True, discount_value is an amount per unit instead of a percentage.",
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("100.00"),
                        help_text="Percentage (0-100) or flat amount per discounted unit.",
                        max_digits=10,
                    ),
                ),
                (
                    "minimum_buy_count",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Units that must be bought for the discount to apply.",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "apply_count",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Units discounted per application.",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "apply_to_sku",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="SKU of the product the customer gets. Empty means the qualifying products.",
                        max_length=100,
                    ),
                ),
                ("priority", models.IntegerField(default=0, help_text="Lower values are evaluated first.")),
                (
                    "apply_further_discounts",
                    models.BooleanField(
                        default=False,
                        help_text="When True, lower priority discounts are still evaluated after this one applies.",
                    ),
                ),
                (
                    "limit_per_order",
                    models.PositiveIntegerField(default=0, help_text="Maximum applications per order. 0 means unlimited."),
                ),
                (
                    "auto_add_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="When True, the free product may be added to the cart automatically.",
                    ),
                ),
                ("uses_coupons", models.BooleanField(default=False)),
                ("is_product_coupon", models.BooleanField(default=False)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["priority", "pk"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("minimum_buy_count__gte", 1)),
                        name="multibuy_discount_minimum_buy_count_gte_1",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("apply_count__gte", 1)),
                        name="multibuy_discount_apply_count_gte_1",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MultiBuyDiscountProduct",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=100)),
                (
                    "is_included",
                    models.BooleanField(default=True, help_text="When False, the product is excluded from the discount."),
                ),
                (
                    "discount",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="products",
                        to="multibuy_discounts.multibuydiscount",
                    ),
                ),
            ],
            options={
                "unique_together": {("discount", "sku")},
            },
        ),
        migrations.CreateModel(
            name="MultiBuyCouponCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=200)),
                (
                    "use_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Maximum number of redemptions. Empty means unlimited.",
                        null=True,
                    ),
                ),
                ("use_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "discount",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="coupon_codes",
                        to="multibuy_discounts.multibuydiscount",
                    ),
                ),
            ],
            options={
                "unique_together": {("discount", "code")},
            },
        ),
    ]
