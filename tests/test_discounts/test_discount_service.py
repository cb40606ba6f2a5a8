"""Tests for MultiBuyDiscountService in django_multibuy.discounts.services.discount_service."""

import logging
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.test import override_settings
from django.utils import timezone

from django_multibuy.discounts.models import MultiBuyCouponCode, MultiBuyDiscount, MultiBuyDiscountProduct
from django_multibuy.discounts.services.applicator import CartApplicator
from django_multibuy.discounts.services.discount_service import MultiBuyDiscountService
from tests.test_discounts.helpers import RecordingApplicator, make_item

pytestmark = pytest.mark.django_db


# -- Helpers ------------------------------------------------------------------


def _discount(slug, **kwargs):
    kwargs.setdefault("name", slug.replace("-", " ").title())
    return MultiBuyDiscount.objects.create(slug=slug, **kwargs)


def _line(item_id, sku, price, units, **kwargs):
    return make_item(item_id, price, units, product=sku, **kwargs)


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def tee_mug_discount():
    """Buy two tees, get a mug for free."""
    discount = _discount("tees-for-mug", minimum_buy_count=2, apply_to_sku="MUG")
    MultiBuyDiscountProduct.objects.create(discount=discount, sku="TEE")
    return discount


# -- get_valid_discounts ------------------------------------------------------


class TestGetValidDiscounts:
    """Loading discounts that apply at a point in time."""

    def test_orders_by_priority(self):
        second = _discount("second", priority=2)
        first = _discount("first", priority=1)
        also_second = _discount("also-second", priority=2)

        assert MultiBuyDiscountService.get_valid_discounts() == [first, second, also_second]

    def test_excludes_disabled_and_out_of_window(self):
        now = timezone.now()
        running = _discount("running", valid_from=now - timedelta(days=1), valid_until=now + timedelta(days=1))
        _discount("disabled", is_active=False)
        _discount("expired", valid_until=now - timedelta(days=1))
        upcoming = _discount("upcoming", valid_from=now + timedelta(days=1))

        assert MultiBuyDiscountService.get_valid_discounts() == [running]
        assert MultiBuyDiscountService.get_valid_discounts(now=now + timedelta(days=2)) == [upcoming]

    def test_coupon_discount_needs_matching_code(self):
        plain = _discount("plain", priority=1)
        coupon = _discount("coupon", priority=2, uses_coupons=True)
        MultiBuyCouponCode.objects.create(discount=coupon, code="SAVE")

        assert MultiBuyDiscountService.get_valid_discounts() == [plain]
        assert MultiBuyDiscountService.get_valid_discounts(coupon_codes=["nope", ""]) == [plain]
        assert MultiBuyDiscountService.get_valid_discounts(coupon_codes=["save"]) == [plain, coupon]

    def test_exhausted_coupon(self):
        coupon = _discount("coupon", is_product_coupon=True)
        MultiBuyCouponCode.objects.create(discount=coupon, code="SAVE", use_limit=1, use_count=1)

        assert MultiBuyDiscountService.get_valid_discounts(coupon_codes=["SAVE"]) == []
        with override_settings(DJANGO_MULTIBUY={"ignore_coupon_use_limit": True}):
            assert MultiBuyDiscountService.get_valid_discounts(coupon_codes=["SAVE"]) == [coupon]


# -- build_rule ---------------------------------------------------------------


class TestBuildRule:
    """Adapting stored discounts into plain rules."""

    def test_copies_thresholds(self):
        discount = _discount(
            "thresholds",
            minimum_buy_count=3,
            apply_count=2,
            limit_per_order=4,
            apply_further_discounts=True,
            auto_add_enabled=True,
        )
        rule = MultiBuyDiscountService.build_rule(discount)

        assert rule.based_on_units_count == 3
        assert rule.apply_on_units_count == 2
        assert rule.max_application == 4
        assert rule.apply_further_discounts is True
        assert rule.auto_add_enabled is True
        assert rule.key == discount.pk
        assert str(rule) == "Thresholds"

    def test_separate_target_product(self, tee_mug_discount):
        rule = MultiBuyDiscountService.build_rule(tee_mug_discount)
        tee = _line("1", "TEE", 20, 1)
        mug = _line("2", "MUG", 8, 1)
        hat = _line("3", "HAT", 15, 1)

        assert rule.is_based_on(tee) is True
        assert rule.is_based_on(hat) is False
        assert rule.is_based_on(mug) is False
        assert rule.is_applicable_on(mug) is True
        assert rule.is_applicable_on(tee) is False

        items = [tee, hat, mug]
        rule.prioritize_items(items)
        assert items == [mug, tee, hat]

    def test_same_product_scope_with_exclusions(self):
        discount = _discount("everything-but-mugs")
        MultiBuyDiscountProduct.objects.create(discount=discount, sku="MUG", is_included=False)
        rule = MultiBuyDiscountService.build_rule(discount)
        tee = _line("1", "TEE", 20, 1)
        mug = _line("2", "MUG", 8, 1)

        assert rule.is_based_on(tee) is True
        assert rule.is_applicable_on(tee) is True
        assert rule.is_based_on(mug) is False
        assert rule.is_applicable_on(mug) is False

        items = [mug, tee]
        rule.prioritize_items(items)
        assert items == [mug, tee]

    def test_predicates_do_not_query(self, tee_mug_discount, django_assert_num_queries):
        rule = MultiBuyDiscountService.build_rule(tee_mug_discount)
        with django_assert_num_queries(0):
            rule.is_based_on(_line("1", "TEE", 20, 1))
            rule.is_applicable_on(_line("2", "MUG", 8, 1))


# -- calculate_discount_amount ------------------------------------------------


class TestCalculateDiscountAmount:
    """Monetary value of a discounted quantity."""

    @pytest.mark.parametrize(
        ("is_flat", "value", "price", "units", "expected"),
        [
            (False, "100.00", "8.00", "1", "8.00"),
            (False, "50.00", "8.00", "3", "12.00"),
            (False, "150.00", "8.00", "1", "8.00"),
            (True, "3.00", "10.00", "2", "6.00"),
            (True, "15.00", "10.00", "2", "20.00"),
        ],
    )
    def test_amounts(self, is_flat, value, price, units, expected):
        discount = MultiBuyDiscount(name="x", slug="x", is_flat=is_flat, discount_value=Decimal(value))
        amount = MultiBuyDiscountService.calculate_discount_amount(discount, Decimal(price), Decimal(units))
        assert amount == Decimal(expected)


# -- evaluate -----------------------------------------------------------------


class TestEvaluate:
    """End-to-end pricing passes over stored discounts."""

    def test_free_mug_with_two_tees(self, tee_mug_discount):
        items = [_line("tees", "TEE", 20, 2), _line("mug", "MUG", 8, 1)]
        applicator = MultiBuyDiscountService.evaluate(items)

        assert isinstance(applicator, CartApplicator)
        assert applicator.discount_for("mug") == Decimal(8)
        assert applicator.discount_for("tees") == Decimal(0)
        assert applicator.applied_rules[0].key == tee_mug_discount.pk

    def test_missing_mug_is_not_added_by_default(self, tee_mug_discount):
        applicator = MultiBuyDiscountService.evaluate([_line("tees", "TEE", 20, 2)])

        assert applicator.total_discount == Decimal(0)
        assert applicator.missed_discounts == []

    @override_settings(DJANGO_MULTIBUY={"auto_add_missed_products": True})
    def test_missing_mug_is_accepted_for_auto_add(self, tee_mug_discount):
        applicator = MultiBuyDiscountService.evaluate([_line("tees", "TEE", 20, 4)])

        assert len(applicator.missed_discounts) == 1
        assert applicator.missed_discounts[0].count == 2
        assert applicator.missed_discounts[0].rule.key == tee_mug_discount.pk

    def test_higher_priority_discount_blocks_the_rest(self):
        _discount("half-off-pairs", priority=1, discount_value=Decimal("50.00"))
        _discount("free-pairs", priority=2)
        applicator = MultiBuyDiscountService.evaluate([_line("tees", "TEE", 10, 2)])

        assert applicator.total_discount == Decimal(5)

    def test_chained_discounts_both_apply(self):
        first = _discount("tee-deal", priority=1, apply_further_discounts=True)
        MultiBuyDiscountProduct.objects.create(discount=first, sku="TEE")
        second = _discount("hat-deal", priority=2)
        MultiBuyDiscountProduct.objects.create(discount=second, sku="HAT")
        items = [_line("tees", "TEE", 10, 2), _line("hats", "HAT", 6, 2)]
        applicator = MultiBuyDiscountService.evaluate(items)

        assert applicator.discount_for("tees") == Decimal(10)
        assert applicator.discount_for("hats") == Decimal(6)

    def test_coupon_codes_are_forwarded(self):
        coupon = _discount("coupon", uses_coupons=True)
        MultiBuyCouponCode.objects.create(discount=coupon, code="PAIR")
        items = [_line("tees", "TEE", 10, 2)]

        assert MultiBuyDiscountService.evaluate(items).total_discount == Decimal(0)
        assert MultiBuyDiscountService.evaluate(items, coupon_codes=["PAIR"]).total_discount == Decimal(10)

    def test_custom_applicator_is_used(self, tee_mug_discount):
        recorder = RecordingApplicator()
        items = [_line("tees", "TEE", 20, 2), _line("mug", "MUG", 8, 1)]
        result = MultiBuyDiscountService.evaluate(items, applicator=recorder)

        assert result is recorder
        assert [(rule.key, item_id, units) for rule, item_id, units in recorder.applied] == [
            (tee_mug_discount.pk, "mug", Decimal(1)),
        ]

    def test_discount_with_zero_unit_count_is_skipped(self, caplog):
        broken = MultiBuyDiscount(name="Broken", slug="broken", minimum_buy_count=0, priority=1)
        valid = _discount("valid", priority=5)
        items = [_line("a", "TEE", 10, 2)]

        with (
            patch.object(MultiBuyDiscountService, "get_valid_discounts", return_value=[broken, valid]),
            caplog.at_level(logging.WARNING, logger="django_multibuy.discounts.services.discount_service"),
        ):
            applicator = MultiBuyDiscountService.evaluate(items)

        assert applicator.total_discount == Decimal(10)
        assert applicator.applied_rules[0].key == valid.pk
        assert "Skipping multi-buy discount 'Broken'" in caplog.text

    def test_no_discounts_is_a_no_op(self):
        recorder = RecordingApplicator()
        MultiBuyDiscountService.evaluate([_line("tees", "TEE", 10, 2)], applicator=recorder)

        assert recorder.calls == [("reset",)]
