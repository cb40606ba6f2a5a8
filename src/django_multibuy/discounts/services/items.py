"""Cart line values consumed by the multi-buy evaluator."""

from collections.abc import Hashable
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class MultiBuyItem:
    """One cart line eligible for multi-buy evaluation.

    Items are built fresh by the caller for every pricing pass; the evaluator
    only reads them.

    Attributes:
        item_id: Identity of the cart line. Must be unique within one
            evaluation call.
        product: Opaque product reference inspected by rule predicates
            (a SKU for the model-backed rules).
        unit_price: Price of a single unit.
        units: Quantity of the line. May be fractional.
        auto_added_units: The part of ``units`` that an earlier pricing pass
            added to the cart for free.
    """

    item_id: Hashable
    product: Hashable
    unit_price: Decimal
    units: Decimal
    auto_added_units: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        if self.units < 0:
            msg = f"units must be non-negative, got {self.units}"
            raise ValueError(msg)
        if not 0 <= self.auto_added_units <= self.units:
            msg = f"auto_added_units must be between 0 and units ({self.units}), got {self.auto_added_units}"
            raise ValueError(msg)

    @property
    def paid_units(self) -> Decimal:
        """Units the customer is paying for (``units`` minus auto-added)."""
        return self.units - self.auto_added_units
