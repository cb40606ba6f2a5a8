"""Typed configuration for django-multibuy.

Reads a single ``DJANGO_MULTIBUY`` dict from Django settings and exposes it as
a frozen dataclass with sensible defaults.

Usage::

    from django_multibuy.settings import get_config

    config = get_config()
    config.auto_add_missed_products
    config.max_auto_add_per_discount
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class MultiBuyConfig:
    """Top-level django-multibuy configuration."""

    auto_add_missed_products: bool = False
    ignore_coupon_use_limit: bool = False
    max_auto_add_per_discount: int = 0


@functools.lru_cache(maxsize=1)
def get_config() -> MultiBuyConfig:
    """Build and return the multi-buy configuration.

    Reads ``settings.DJANGO_MULTIBUY`` (a plain dict) and returns a frozen
    :class:`MultiBuyConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_MULTIBUY", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_MULTIBUY must be a mapping (dict-like object)"
        raise TypeError(msg)

    config = MultiBuyConfig(**dict(raw))
    _validate_multibuy_config(config)
    return config


def _validate_multibuy_config(config: MultiBuyConfig) -> None:
    """Validate configuration values with clear error messages."""
    if not isinstance(config.auto_add_missed_products, bool):
        msg = "DJANGO_MULTIBUY['auto_add_missed_products'] must be a boolean"
        raise TypeError(msg)
    if not isinstance(config.ignore_coupon_use_limit, bool):
        msg = "DJANGO_MULTIBUY['ignore_coupon_use_limit'] must be a boolean"
        raise TypeError(msg)
    cap = config.max_auto_add_per_discount
    if isinstance(cap, bool) or not isinstance(cap, int) or cap < 0:
        msg = "DJANGO_MULTIBUY['max_auto_add_per_discount'] must be a non-negative integer"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_MULTIBUY":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_multibuy.settings.clear_config_cache")
