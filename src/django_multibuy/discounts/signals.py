"""Custom signals for the multi-buy discounts app.

Signals:
    multibuy_discount_applied: Sent by ``CartApplicator`` for every item that
        receives a multi-buy discount during a pricing pass.
        Sender: The rule class.
        Kwargs:
            rule: The rule that matched.
            item: The ``MultiBuyItem`` that was discounted.
            units: Number of discounted units.
            amount: Discount amount returned by the value callback.
    multibuy_missed_discount_accepted: Sent when the applicator authorises
        auto-adding the free product of a missed discount. Receivers own the
        cart mutation and any coupon usage bookkeeping.
        Sender: The rule class.
        Kwargs:
            rule: The rule whose discount was missed.
            count: Number of missed applications accepted.
"""

from django.dispatch import Signal

multibuy_discount_applied = Signal()
multibuy_missed_discount_accepted = Signal()
