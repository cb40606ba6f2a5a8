"""Shared builders and a recording applicator for multi-buy tests."""

from decimal import Decimal

from django_multibuy.discounts.services.items import MultiBuyItem
from django_multibuy.discounts.services.rules import MultiBuyRule, move_to_front


def make_item(item_id, price, units, *, auto_added=0, product=None):
    return MultiBuyItem(
        item_id=item_id,
        product=product if product is not None else item_id,
        unit_price=Decimal(str(price)),
        units=Decimal(str(units)),
        auto_added_units=Decimal(str(auto_added)),
    )


def make_rule(*, based_on=None, applies_on=None, buy=1, get=1, front=None, prioritizer=None, **kwargs):
    """Build a rule; ``front`` lists item ids the rule moves to the front."""
    if front is not None:
        targets = set(front)

        def prioritizer(items):
            move_to_front(items, lambda item: item.item_id in targets)

    return MultiBuyRule(
        based_on=based_on or (lambda item: True),
        applies_on=applies_on or (lambda item: True),
        based_on_units_count=buy,
        apply_on_units_count=get,
        prioritizer=prioritizer,
        **kwargs,
    )


def only(*item_ids):
    wanted = set(item_ids)
    return lambda item: item.item_id in wanted


class RecordingApplicator:
    """Applicator that records every call in order."""

    def __init__(self, accept_missed=False):
        self.accept_missed = accept_missed
        self.calls = []

    def reset(self):
        self.calls.append(("reset",))

    def apply_discount(self, rule, item, units):
        self.calls.append(("apply", rule, item.item_id, units))

    def accepts_missed_discount(self, rule, missed_application_count):
        self.calls.append(("missed", rule, missed_application_count))
        if callable(self.accept_missed):
            return self.accept_missed(rule, missed_application_count)
        return self.accept_missed

    @property
    def applied(self):
        return [call[1:] for call in self.calls if call[0] == "apply"]

    @property
    def missed_offers(self):
        return [call[1:] for call in self.calls if call[0] == "missed"]
