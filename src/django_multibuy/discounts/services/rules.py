"""Multi-buy discount rules.

The evaluator talks to rules through the :class:`DiscountRule` protocol: any
object exposing the threshold attributes and the three item hooks satisfies
it (structural subtyping, no inheritance needed). :class:`MultiBuyRule` is the
stock implementation, a plain record with the predicates injected as
callables so rules can be built without any data-access layer.
"""

from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Protocol

from django_multibuy.discounts.services.items import MultiBuyItem

ItemPredicate = Callable[[MultiBuyItem], bool]
ItemPrioritizer = Callable[[list[MultiBuyItem]], None]


class DiscountRule(Protocol):
    """Interface of a single "buy N, get M" discount.

    Attributes:
        based_on_units_count: Units that must be bought ("buy N"), >= 1.
        apply_on_units_count: Units that receive the discount ("get M"), >= 1.
        max_application: Maximum applications per evaluation; ``<= 0`` means
            unlimited.
        apply_further_discounts: Whether later rules are still evaluated once
            this rule has matched.
        auto_add_enabled: Whether auto-added units may receive this discount.
    """

    based_on_units_count: int
    apply_on_units_count: int
    max_application: int
    apply_further_discounts: bool
    auto_add_enabled: bool

    def is_based_on(self, item: MultiBuyItem) -> bool:
        """Return whether units of *item* count toward the purchase condition."""
        ...

    def is_applicable_on(self, item: MultiBuyItem) -> bool:
        """Return whether units of *item* may receive the discount."""
        ...

    def prioritize_items(self, items: list[MultiBuyItem]) -> None:
        """Reorder *items* in place, moving the rule's targets to the front.

        Implementations must not add or remove items.
        """
        ...


def move_to_front(items: list[MultiBuyItem], predicate: ItemPredicate) -> None:
    """Stable in-place partition: items matching *predicate* first.

    Both partitions keep their existing relative order.
    """
    items[:] = [item for item in items if predicate(item)] + [item for item in items if not predicate(item)]


@dataclass(frozen=True, slots=True, eq=False)
class MultiBuyRule:
    """A multi-buy discount as plain data plus item predicates.

    Instances compare by identity, so the same rule object can be used as a
    key when collecting applicator results.

    Attributes:
        based_on: Predicate selecting items whose units satisfy the "buy" side.
        applies_on: Predicate selecting items whose units get the discount.
        based_on_units_count: "Buy N".
        apply_on_units_count: "Get M".
        max_application: Cap on applications per evaluation, ``<= 0`` unlimited.
        apply_further_discounts: Keep evaluating later rules after a match.
        auto_add_enabled: Allow auto-added units to be discounted.
        prioritizer: Optional in-place reordering of the price-sorted items.
        key: Caller-defined identity, e.g. the primary key of the stored
            discount.
        name: Human readable name used in log messages.
    """

    based_on: ItemPredicate
    applies_on: ItemPredicate
    based_on_units_count: int = 1
    apply_on_units_count: int = 1
    max_application: int = 0
    apply_further_discounts: bool = False
    auto_add_enabled: bool = False
    prioritizer: ItemPrioritizer | None = None
    key: Hashable = None
    name: str = ""

    def __post_init__(self) -> None:
        if self.based_on_units_count < 1:
            msg = f"based_on_units_count must be at least 1, got {self.based_on_units_count}"
            raise ValueError(msg)
        if self.apply_on_units_count < 1:
            msg = f"apply_on_units_count must be at least 1, got {self.apply_on_units_count}"
            raise ValueError(msg)

    def __str__(self) -> str:
        return self.name or f"buy {self.based_on_units_count} get {self.apply_on_units_count}"

    def is_based_on(self, item: MultiBuyItem) -> bool:
        return self.based_on(item)

    def is_applicable_on(self, item: MultiBuyItem) -> bool:
        return self.applies_on(item)

    def prioritize_items(self, items: list[MultiBuyItem]) -> None:
        if self.prioritizer is not None:
            self.prioritizer(items)
