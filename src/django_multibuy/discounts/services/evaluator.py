"""Greedy evaluation of multi-buy ("buy X, get Y") discounts.

For every rule, in the order given by the caller, the evaluator decides which
units of which items satisfy the purchase condition (basis units), which units
receive the discount (target units), and how many times the rule applies.
Units consumed by one rule are unavailable to the rules after it. The results
are emitted through an :class:`Applicator`; nothing is returned.

Selection order matters and is deliberate:

* Items are sorted by ascending unit price, then the rule may move its
  targets to the front (``prioritize_items``).
* Basis units are collected from the *end* of that list, so the rule's
  promoted targets are the last items used as paying stock.
* Target units are collected from the front.

All unit arithmetic uses floor division, even for fractional quantities.
"""

import logging
from collections.abc import Hashable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from operator import attrgetter
from typing import TYPE_CHECKING

from django_multibuy.discounts.services.items import MultiBuyItem
from django_multibuy.discounts.services.rules import DiscountRule

if TYPE_CHECKING:
    from django_multibuy.discounts.services.applicator import Applicator

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)

Allocation = list[tuple[MultiBuyItem, Decimal]]


@dataclass
class _EvaluationContext:
    """Per-call state: the item snapshot and the units consumed so far."""

    items: tuple[MultiBuyItem, ...]
    applicator: "Applicator"
    used_units: dict[Hashable, Decimal] = field(init=False)
    _sorted_items: list[MultiBuyItem] | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.used_units = {item.item_id: _ZERO for item in self.items}

    @property
    def sorted_items(self) -> list[MultiBuyItem]:
        """Items in ascending unit price order, ties keeping input order."""
        if self._sorted_items is None:
            self._sorted_items = sorted(self.items, key=attrgetter("unit_price"))
        return self._sorted_items

    def available_units(self, item: MultiBuyItem, *, include_auto_added: bool = False) -> Decimal:
        """Return the unused units of *item*, clamped at zero.

        Auto-added units are left out unless *include_auto_added* is set.
        """
        free_units = _ZERO if include_auto_added else item.auto_added_units
        return max(item.units - free_units - self.used_units[item.item_id], _ZERO)

    def allocate(self, items: Sequence[MultiBuyItem], needed: Decimal, *, include_auto_added: bool = False) -> Allocation:
        """Consume *needed* units walking *items* in order.

        Each item gives as many units as it has available until the need is
        met. Consumed units are added to ``used_units``.
        """
        allocation: Allocation = []
        remaining = needed
        for item in items:
            if remaining <= 0:
                break
            taken = min(self.available_units(item, include_auto_added=include_auto_added), remaining)
            self.used_units[item.item_id] += taken
            remaining -= taken
            allocation.append((item, taken))
        return allocation


class MultiBuyEvaluator:
    """Evaluates an ordered list of multi-buy rules against cart items.

    The evaluator holds no state between calls and can be reused, but a single
    instance must not run overlapping evaluations from several threads.
    """

    def evaluate(
        self,
        rules: Sequence[DiscountRule] | None,
        items: Sequence[MultiBuyItem] | None,
        applicator: "Applicator | None",
    ) -> None:
        """Run one pricing pass.

        Rules are evaluated in the given order, which is treated as their
        priority. Once a rule matches (applies at least once, or has a missed
        discount accepted) and does not allow further discounts, the remaining
        rules are skipped.

        Args:
            rules: Discount rules, already filtered and sorted by the caller.
            items: Cart items for this pass.
            applicator: Receives ``reset``, ``apply_discount`` and
                ``accepts_missed_discount`` calls.
        """
        if applicator is None:
            logger.debug("No applicator supplied, skipping multi-buy evaluation")
            return

        applicator.reset()
        if not rules or not items:
            return

        context = _EvaluationContext(items=tuple(items), applicator=applicator)
        for rule in rules:
            if rule.based_on_units_count < 1 or rule.apply_on_units_count < 1:
                logger.warning(
                    "Skipping multi-buy rule '%s' with invalid unit counts (buy %s, get %s)",
                    rule,
                    rule.based_on_units_count,
                    rule.apply_on_units_count,
                )
                continue

            prioritized = list(context.sorted_items)
            rule.prioritize_items(prioritized)

            if _match_rule(context, rule, prioritized) and not rule.apply_further_discounts:
                logger.debug("Multi-buy rule '%s' matched, skipping further rules", rule)
                break


def _match_rule(context: _EvaluationContext, rule: DiscountRule, prioritized: list[MultiBuyItem]) -> bool:
    """Apply *rule* as many times as possible and resolve a missed discount.

    Returns:
        ``True`` when the rule applied at least once or a missed discount
        was accepted.
    """
    basis_items, basis_reached = _find_basis_items(context, rule, prioritized)

    application_count = 0
    if basis_reached:
        target_items, target_reached = _find_target_items(context, rule, prioritized)
        if target_reached:
            application_count = _apply_rule(context, rule, basis_items, target_items)

    missed_accepted = _resolve_missed_discount(context, rule, basis_items, application_count)
    if application_count:
        logger.debug("Multi-buy rule '%s' applied %d times", rule, application_count)
    return application_count > 0 or missed_accepted


def _find_basis_items(
    context: _EvaluationContext,
    rule: DiscountRule,
    prioritized: list[MultiBuyItem],
) -> tuple[list[MultiBuyItem], bool]:
    """Collect basis items from the back of the prioritized list.

    Returns:
        The items collected and whether they hold at least
        ``based_on_units_count`` paid units. When the threshold is not reached
        every eligible item is returned.
    """
    candidates = [item for item in prioritized if context.available_units(item) > 0 and rule.is_based_on(item)]
    candidates.reverse()

    found: list[MultiBuyItem] = []
    units = _ZERO
    for item in candidates:
        found.append(item)
        units += context.available_units(item)
        if units >= rule.based_on_units_count:
            return found, True
    return found, False


def _find_target_items(
    context: _EvaluationContext,
    rule: DiscountRule,
    prioritized: list[MultiBuyItem],
) -> tuple[list[MultiBuyItem], bool]:
    """Collect target items from the front of the prioritized list."""
    found: list[MultiBuyItem] = []
    units = _ZERO
    for item in prioritized:
        available = context.available_units(item, include_auto_added=rule.auto_add_enabled)
        if available <= 0 or not rule.is_applicable_on(item):
            continue
        found.append(item)
        units += available
        if units >= rule.apply_on_units_count:
            return found, True
    return found, False


def _apply_rule(
    context: _EvaluationContext,
    rule: DiscountRule,
    basis_items: list[MultiBuyItem],
    target_items: list[MultiBuyItem],
) -> int:
    """Consume basis and target units and emit ``apply_discount`` calls.

    Returns:
        The number of times the rule was applied.
    """
    basis_units = [context.available_units(item) for item in basis_items]
    target_units = [
        context.available_units(item, include_auto_added=rule.auto_add_enabled) for item in target_items
    ]

    # An item present in both sets contributes its larger capacity only once.
    capacity: dict[Hashable, Decimal] = {}
    for item, units in zip(basis_items + target_items, basis_units + target_units, strict=True):
        capacity[item.item_id] = max(capacity.get(item.item_id, _ZERO), units)
    total_units = sum(capacity.values(), _ZERO)

    application_count = int(total_units // (rule.based_on_units_count + rule.apply_on_units_count))
    if rule.max_application > 0:
        application_count = min(application_count, rule.max_application)
    application_count = min(
        application_count,
        int(sum(basis_units, _ZERO) // rule.based_on_units_count),
        int(sum(target_units, _ZERO) // rule.apply_on_units_count),
    )
    if application_count <= 0:
        return 0

    context.allocate(basis_items, Decimal(application_count * rule.based_on_units_count))
    discounted = context.allocate(
        target_items,
        Decimal(application_count * rule.apply_on_units_count),
        include_auto_added=rule.auto_add_enabled,
    )
    for item, units in discounted:
        if units > 0:
            context.applicator.apply_discount(rule, item, units)
    return application_count


def _resolve_missed_discount(
    context: _EvaluationContext,
    rule: DiscountRule,
    basis_items: list[MultiBuyItem],
    application_count: int,
) -> bool:
    """Offer the applicator to auto-add the product of a missed discount.

    A discount is missed when the leftover paid basis units could satisfy
    the purchase condition again. If the applicator accepts, those basis
    units are consumed without any ``apply_discount`` call.
    """
    leftover = sum((context.available_units(item) for item in basis_items), _ZERO)
    missed = int(leftover // rule.based_on_units_count)
    if rule.max_application > 0:
        missed = min(missed, rule.max_application - application_count)
    if missed <= 0:
        return False

    if not context.applicator.accepts_missed_discount(rule, missed):
        return False

    context.allocate(basis_items, Decimal(missed * rule.based_on_units_count))
    return True
