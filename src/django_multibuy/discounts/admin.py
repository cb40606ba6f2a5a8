"""Django admin configuration for the multi-buy discounts app."""

from django.contrib import admin

from django_multibuy.discounts.models import (
    MultiBuyCouponCode,
    MultiBuyDiscount,
    MultiBuyDiscountProduct,
)


class MultiBuyDiscountProductInline(admin.TabularInline):
    """Inline editing of the products a discount includes or excludes."""

    model = MultiBuyDiscountProduct
    extra = 1


class MultiBuyCouponCodeInline(admin.TabularInline):
    """Inline display of coupon codes within the discount admin.

    Usage counts are read-only since they are maintained by the shop.
    """

    model = MultiBuyCouponCode
    extra = 0
    readonly_fields = ("use_count", "created_at")


@admin.register(MultiBuyDiscount)
class MultiBuyDiscountAdmin(admin.ModelAdmin):
    """Admin interface for managing multi-buy discounts.

    Lists discounts in evaluation order with their derived status and allows
    filtering by coupon usage and active state.
    """

    list_display = (
        "name",
        "priority",
        "minimum_buy_count",
        "apply_count",
        "apply_to_sku",
        "discount_value",
        "is_flat",
        "status_display",
        "is_active",
    )
    list_filter = ("is_active", "uses_coupons", "is_product_coupon", "auto_add_enabled")
    search_fields = ("name", "slug", "apply_to_sku")
    prepopulated_fields = {"slug": ("name",)}
    inlines = (MultiBuyDiscountProductInline, MultiBuyCouponCodeInline)

    @admin.display(description="Status")
    def status_display(self, obj: MultiBuyDiscount) -> str:
        """Return the human readable status label."""
        return MultiBuyDiscount.Status(obj.status).label


@admin.register(MultiBuyCouponCode)
class MultiBuyCouponCodeAdmin(admin.ModelAdmin):
    """Admin interface for coupon codes across all discounts."""

    list_display = ("code", "discount", "use_count", "use_limit")
    list_filter = ("discount",)
    search_fields = ("code",)
    readonly_fields = ("use_count",)
