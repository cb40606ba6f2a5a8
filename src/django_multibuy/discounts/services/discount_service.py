"""Multi-buy discount service.

Loads the stored discounts that are currently valid, adapts them into plain
:class:`MultiBuyRule` objects, and runs the evaluator for a pricing pass.
The evaluator itself never touches the database.
"""

import datetime
import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from django.db.models import Q
from django.utils import timezone

from django_multibuy.discounts.models import MultiBuyDiscount
from django_multibuy.discounts.services.applicator import Applicator, CartApplicator
from django_multibuy.discounts.services.evaluator import MultiBuyEvaluator
from django_multibuy.discounts.services.items import MultiBuyItem
from django_multibuy.discounts.services.rules import MultiBuyRule, move_to_front
from django_multibuy.settings import get_config

logger = logging.getLogger(__name__)

_HUNDRED = Decimal(100)


class MultiBuyDiscountService:
    """Stateless service for multi-buy discount evaluation.

    All methods are static and operate on ``MultiBuyDiscount`` instances or
    on the plain items built by the caller from its cart.
    """

    @staticmethod
    def get_valid_discounts(
        *,
        coupon_codes: Iterable[str] = (),
        now: datetime.datetime | None = None,
    ) -> list[MultiBuyDiscount]:
        """Return the discounts applicable right now, in evaluation order.

        Args:
            coupon_codes: Coupon codes the customer entered. Discounts that
                require a coupon are only returned when one of them is
                accepted.
            now: Point in time to check validity windows against. Defaults
                to the current time.

        Returns:
            Active discounts within their validity window, ordered by
            ascending priority.
        """
        now = now or timezone.now()
        config = get_config()
        codes = [code for code in coupon_codes if code and code.strip()]

        discounts = (
            MultiBuyDiscount.objects.filter(is_active=True)
            .filter(Q(valid_from__isnull=True) | Q(valid_from__lte=now))
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gte=now))
            .prefetch_related("products")
            .order_by("priority", "pk")
        )

        valid: list[MultiBuyDiscount] = []
        for discount in discounts:
            if discount.requires_coupon and not any(
                discount.accepts_coupon(code, ignore_use_limit=config.ignore_coupon_use_limit) for code in codes
            ):
                continue
            valid.append(discount)
        return valid

    @staticmethod
    def build_rule(discount: MultiBuyDiscount) -> MultiBuyRule:
        """Adapt a stored discount into a plain rule for the evaluator.

        The product scope is read once, so the returned rule's predicates do
        not query the database.

        Args:
            discount: The discount to adapt.

        Returns:
            A ``MultiBuyRule`` keyed by the discount's primary key.
        """
        products = list(discount.products.all())
        included = frozenset(product.sku for product in products if product.is_included)
        excluded = frozenset(product.sku for product in products if not product.is_included)

        def based_on(item: MultiBuyItem) -> bool:
            sku = str(item.product)
            if sku in excluded:
                return False
            return not included or sku in included

        apply_to_sku = discount.apply_to_sku.strip()
        if apply_to_sku:

            def applies_on(item: MultiBuyItem) -> bool:
                return str(item.product) == apply_to_sku

            def prioritizer(items: list[MultiBuyItem]) -> None:
                move_to_front(items, applies_on)

        else:
            applies_on = based_on
            prioritizer = None

        return MultiBuyRule(
            based_on=based_on,
            applies_on=applies_on,
            based_on_units_count=discount.minimum_buy_count,
            apply_on_units_count=discount.apply_count,
            max_application=discount.limit_per_order,
            apply_further_discounts=discount.apply_further_discounts,
            auto_add_enabled=discount.auto_add_enabled,
            prioritizer=prioritizer,
            key=discount.pk,
            name=discount.name,
        )

    @staticmethod
    def calculate_discount_amount(discount: MultiBuyDiscount, unit_price: Decimal, units: Decimal) -> Decimal:
        """Compute the discount granted on *units* units priced *unit_price*.

        Flat discounts take ``discount_value`` off every unit but never more
        than the unit price. Percentage discounts are capped at 100%. The
        result is not rounded.
        """
        if discount.is_flat:
            return min(discount.discount_value, unit_price) * units
        percentage = min(discount.discount_value, _HUNDRED)
        return unit_price * units * percentage / _HUNDRED

    @staticmethod
    def evaluate(
        items: Sequence[MultiBuyItem],
        *,
        coupon_codes: Iterable[str] = (),
        applicator: Applicator | None = None,
    ) -> Applicator:
        """Evaluate all currently valid discounts against cart items.

        Args:
            items: Items built from the cart for this pricing pass.
            coupon_codes: Coupon codes entered by the customer.
            applicator: Receiver of the results. Defaults to a
                ``CartApplicator`` pricing discounts with
                :meth:`calculate_discount_amount`.

        Returns:
            The applicator holding the results of the pass.
        """
        discounts = MultiBuyDiscountService.get_valid_discounts(coupon_codes=coupon_codes)
        discounts_by_pk = {discount.pk: discount for discount in discounts}
        rules: list[MultiBuyRule] = []
        for discount in discounts:
            if discount.minimum_buy_count < 1 or discount.apply_count < 1:
                logger.warning(
                    "Skipping multi-buy discount '%s' with invalid unit counts (buy %s, get %s)",
                    discount,
                    discount.minimum_buy_count,
                    discount.apply_count,
                )
                continue
            rules.append(MultiBuyDiscountService.build_rule(discount))

        if applicator is None:

            def value_callback(rule: MultiBuyRule, item: MultiBuyItem, units: Decimal) -> Decimal:
                discount = discounts_by_pk[rule.key]
                return MultiBuyDiscountService.calculate_discount_amount(discount, item.unit_price, units)

            applicator = CartApplicator(value_callback)

        logger.debug("Evaluating %d multi-buy discounts against %d items", len(rules), len(items))
        MultiBuyEvaluator().evaluate(rules, items, applicator)
        return applicator
