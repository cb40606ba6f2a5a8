"""Multi-buy discount, product scope, and coupon code models for django-multibuy."""

import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class MultiBuyDiscount(models.Model):
    """A "buy N, get M" promotion.

    Customers buying ``minimum_buy_count`` qualifying units get
    ``apply_count`` units discounted by ``discount_value`` (a percentage, or a
    flat amount per unit when ``is_flat`` is set). Discounted units come from
    ``apply_to_sku`` when set, otherwise from the qualifying products
    themselves. Discounts are evaluated in ascending ``priority`` order.
    """

    class Status(models.TextChoices):
        """Lifecycle states derived from the discount configuration."""

        DISABLED = "disabled", "Disabled"
        INCOMPLETE = "incomplete", "Incomplete"
        NOT_STARTED = "not_started", "Not started"
        ACTIVE = "active", "Active"
        FINISHED = "finished", "Finished"

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    is_flat = models.BooleanField(
        default=False,
        help_text="When True, discount_value is an amount per unit instead of a percentage.",
    )
    discount_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("100.00"),
        help_text="Percentage (0-100) or flat amount per discounted unit.",
    )
    minimum_buy_count = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Units that must be bought for the discount to apply.",
    )
    apply_count = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Units discounted per application.",
    )
    apply_to_sku = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="SKU of the product the customer gets. Empty means the qualifying products.",
    )
    priority = models.IntegerField(default=0, help_text="Lower values are evaluated first.")
    apply_further_discounts = models.BooleanField(
        default=False,
        help_text="When True, lower priority discounts are still evaluated after this one applies.",
    )
    limit_per_order = models.PositiveIntegerField(
        default=0,
        help_text="Maximum applications per order. 0 means unlimited.",
    )
    auto_add_enabled = models.BooleanField(
        default=False,
        help_text="When True, the free product may be added to the cart automatically.",
    )
    uses_coupons = models.BooleanField(default=False)
    is_product_coupon = models.BooleanField(default=False)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["priority", "pk"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(minimum_buy_count__gte=1),
                name="multibuy_discount_minimum_buy_count_gte_1",
            ),
            models.CheckConstraint(
                condition=models.Q(apply_count__gte=1),
                name="multibuy_discount_apply_count_gte_1",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        """Validate the validity window and the discount value."""
        if self.valid_from and self.valid_until and self.valid_from > self.valid_until:
            raise ValidationError({"valid_until": "End of the validity window must be after its start."})
        if not self.is_flat and self.discount_value > 100:
            raise ValidationError({"discount_value": "A percentage discount cannot exceed 100."})
        if self.minimum_buy_count < 1:
            raise ValidationError({"minimum_buy_count": "At least one unit must be bought."})
        if self.apply_count < 1:
            raise ValidationError({"apply_count": "At least one unit must be discounted."})

    def is_valid_for_date(self, when: datetime.datetime) -> bool:
        """Check whether *when* falls inside the optional validity window."""
        if self.valid_from and when < self.valid_from:
            return False
        return not (self.valid_until and when > self.valid_until)

    @property
    def is_running(self) -> bool:
        return self.is_valid_for_date(timezone.now())

    @property
    def requires_coupon(self) -> bool:
        """Product coupons always need a coupon code to be redeemed."""
        return self.uses_coupons or self.is_product_coupon

    @property
    def has_coupons(self) -> bool:
        return self.coupon_codes.exists()

    @property
    def coupons_use_limit_exceeded(self) -> bool:
        """Return ``True`` when every coupon code of this discount is used up."""
        if not self.has_coupons:
            return False
        remaining = self.coupon_codes.filter(
            models.Q(use_limit__isnull=True) | models.Q(use_count__lt=models.F("use_limit")),
        )
        return not remaining.exists()

    @property
    def status(self) -> str:
        """Return the current :class:`Status` of the discount."""
        if not self.is_active:
            return self.Status.DISABLED
        if self.requires_coupon and not self.has_coupons:
            return self.Status.INCOMPLETE

        now = timezone.now()
        if self.is_valid_for_date(now):
            if self.requires_coupon and self.coupons_use_limit_exceeded:
                return self.Status.FINISHED
            return self.Status.ACTIVE
        if self.valid_from and self.valid_from > now:
            return self.Status.NOT_STARTED
        return self.Status.FINISHED

    def accepts_coupon(self, code: str, *, ignore_use_limit: bool = False) -> bool:
        """Check whether *code* redeems this discount.

        Args:
            code: The coupon code entered by the customer. Matching is
                case-insensitive.
            ignore_use_limit: Accept coupons whose use limit is exhausted.

        Returns:
            ``True`` if the code belongs to this discount and still has uses
            left (or the limit is ignored).
        """
        coupon = self.coupon_codes.filter(code__iexact=code.strip()).first()
        if coupon is None:
            return False
        return ignore_use_limit or not coupon.is_use_limit_exceeded


class MultiBuyDiscountProduct(models.Model):
    """A product included in or excluded from a discount's "buy" side.

    When a discount has no included products every product qualifies, minus
    the excluded ones.
    """

    discount = models.ForeignKey(
        MultiBuyDiscount,
        on_delete=models.CASCADE,
        related_name="products",
    )
    sku = models.CharField(max_length=100)
    is_included = models.BooleanField(
        default=True,
        help_text="When False, the product is excluded from the discount.",
    )

    class Meta:
        unique_together = [("discount", "sku")]

    def __str__(self) -> str:
        verb = "includes" if self.is_included else "excludes"
        return f"{self.discount} {verb} {self.sku}"


class MultiBuyCouponCode(models.Model):
    """A coupon code that redeems a coupon-only multi-buy discount."""

    discount = models.ForeignKey(
        MultiBuyDiscount,
        on_delete=models.CASCADE,
        related_name="coupon_codes",
    )
    code = models.CharField(max_length=200)
    use_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of redemptions. Empty means unlimited.",
    )
    use_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("discount", "code")]

    def __str__(self) -> str:
        return f"{self.code} ({self.discount})"

    @property
    def is_use_limit_exceeded(self) -> bool:
        return self.use_limit is not None and self.use_count >= self.use_limit
