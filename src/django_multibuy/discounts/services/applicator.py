"""Applicators receive the effects of a multi-buy evaluation.

The evaluator only decides *what* should happen; everything with side effects
(pricing, auto-adding free products, coupon bookkeeping) is funnelled through
an object implementing :class:`Applicator`.
"""

import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from django_multibuy.discounts.services.items import MultiBuyItem
from django_multibuy.discounts.services.rules import DiscountRule
from django_multibuy.discounts.signals import (
    multibuy_discount_applied,
    multibuy_missed_discount_accepted,
)
from django_multibuy.settings import get_config

logger = logging.getLogger(__name__)

DiscountValueCallback = Callable[[DiscountRule, MultiBuyItem, Decimal], Decimal]
MissedDiscountPolicy = Callable[[DiscountRule, int], bool]


class Applicator(Protocol):
    """Interface the evaluator emits its results through."""

    def reset(self) -> None:
        """Forget everything accumulated by a previous evaluation pass."""
        ...

    def apply_discount(self, rule: DiscountRule, item: MultiBuyItem, units: Decimal) -> None:
        """Discount *units* units of *item* by *rule*.

        Called at most once per item and rule in a pass, with the aggregated
        unit count.
        """
        ...

    def accepts_missed_discount(self, rule: DiscountRule, missed_application_count: int) -> bool:
        """Decide whether the free product of a missed discount gets auto-added.

        Returning ``True`` lets the evaluator mark the qualifying basis units
        as consumed; the applicator is responsible for adding the product.
        """
        ...


@dataclass
class DiscountApplication:
    """A discount granted to one item by one rule."""

    rule: DiscountRule
    item: MultiBuyItem
    units: Decimal
    amount: Decimal


@dataclass
class MissedDiscount:
    """A missed discount the applicator agreed to resolve by auto-adding."""

    rule: DiscountRule
    count: int


class CartApplicator:
    """Applicator collecting discount amounts for one cart pricing pass.

    Args:
        value_callback: Computes the monetary discount for
            ``(rule, item, units)``.
        accept_missed: Answer for missed discounts. Either a boolean or a
            callable ``(rule, count) -> bool``. ``None`` falls back to the
            ``auto_add_missed_products`` setting.
    """

    def __init__(
        self,
        value_callback: DiscountValueCallback,
        *,
        accept_missed: bool | MissedDiscountPolicy | None = None,
    ) -> None:
        self.value_callback = value_callback
        self.accept_missed = accept_missed
        self.applications: list[DiscountApplication] = []
        self.missed_discounts: list[MissedDiscount] = []

    def reset(self) -> None:
        self.applications = []
        self.missed_discounts = []

    def apply_discount(self, rule: DiscountRule, item: MultiBuyItem, units: Decimal) -> None:
        amount = self.value_callback(rule, item, units)
        self.applications.append(DiscountApplication(rule=rule, item=item, units=units, amount=amount))
        multibuy_discount_applied.send(sender=type(rule), rule=rule, item=item, units=units, amount=amount)

    def accepts_missed_discount(self, rule: DiscountRule, missed_application_count: int) -> bool:
        config = get_config()
        cap = config.max_auto_add_per_discount
        if cap and missed_application_count > cap:
            logger.debug(
                "Refusing %d missed applications of '%s' (cap %d)",
                missed_application_count,
                rule,
                cap,
            )
            return False

        policy = self.accept_missed
        if policy is None:
            accepted = config.auto_add_missed_products
        elif callable(policy):
            accepted = bool(policy(rule, missed_application_count))
        else:
            accepted = bool(policy)

        if accepted:
            self.missed_discounts.append(MissedDiscount(rule=rule, count=missed_application_count))
            logger.info("Accepted %d missed applications of '%s' for auto-add", missed_application_count, rule)
            multibuy_missed_discount_accepted.send(sender=type(rule), rule=rule, count=missed_application_count)
        return accepted

    def discount_for(self, item_id: Hashable) -> Decimal:
        """Return the summed discount amount granted to the item."""
        return sum(
            (application.amount for application in self.applications if application.item.item_id == item_id),
            Decimal(0),
        )

    def units_discounted(self, item_id: Hashable) -> Decimal:
        """Return how many units of the item received a discount."""
        return sum(
            (application.units for application in self.applications if application.item.item_id == item_id),
            Decimal(0),
        )

    @property
    def total_discount(self) -> Decimal:
        return sum((application.amount for application in self.applications), Decimal(0))

    @property
    def applied_rules(self) -> list[DiscountRule]:
        """Rules that granted a discount or had a missed discount accepted.

        Host carts use this to update coupon usage counters after checkout.
        """
        rules: list[DiscountRule] = []
        for rule in [a.rule for a in self.applications] + [m.rule for m in self.missed_discounts]:
            if not any(rule is seen for seen in rules):
                rules.append(rule)
        return rules
