"""Django app configuration for the multi-buy discounts app."""

from django.apps import AppConfig


class DjangoMultiBuyDiscountsConfig(AppConfig):
    """Configuration for the multi-buy discounts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_multibuy.discounts"
    label = "multibuy_discounts"
    verbose_name = "Multi-buy Discounts"
