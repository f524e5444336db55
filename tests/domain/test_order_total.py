"""Unit tests for the order total calculator and installment schedule."""

from decimal import Decimal

import pytest

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.cart import CartLine, cart_subtotal, validate_cart
from checkout_core.domain.model.payment import PaymentMethod
from checkout_core.domain.model.value_objects import Money, Quantity
from checkout_core.domain.service.order_total import (
    compute_totals,
    installment_schedule,
    payable_total,
)


# ── Cart ─────────────────────────────────────────────────────────────────────


class TestCart:

    def test_subtotal_sums_line_totals(self):
        lines = [
            CartLine("p1", Money.of("19.90"), Quantity(2)),
            CartLine("p2", Money.of("5.00"), Quantity(1)),
        ]
        assert cart_subtotal(lines) == Money.of("44.80")

    def test_empty_cart_subtotal_is_zero(self):
        assert cart_subtotal([]).is_zero

    def test_empty_cart_rejected(self):
        with pytest.raises(ValidationError, match="at least one item"):
            validate_cart([])


# ── Totals ───────────────────────────────────────────────────────────────────


class TestComputeTotals:

    def test_pix_discount_applies_to_subtotal_plus_fee(self):
        totals = compute_totals(Money.of("100"), Money.zero(), PaymentMethod.PIX, Decimal("5"))
        assert totals.total == Money.of("95.00")
        assert totals.discount == Money.of("5.00")

    def test_pix_discount_includes_delivery_fee(self):
        total = payable_total(Money.of("80"), Money.of("20"), PaymentMethod.PIX, Decimal("10"))
        assert total == Money.of("90.00")

    @pytest.mark.parametrize(
        "method",
        [PaymentMethod.CREDIT_CARD, PaymentMethod.BOLETO, PaymentMethod.WHATSAPP, None],
    )
    def test_other_methods_pay_subtotal_plus_fee(self, method):
        totals = compute_totals(Money.of("100"), Money.of("23.45"), method, Decimal("5"))
        assert totals.total == Money.of("123.45")
        assert totals.discount.is_zero

    def test_pix_without_discount_configured(self):
        total = payable_total(Money.of("100"), Money.zero(), PaymentMethod.PIX, Decimal("0"))
        assert total == Money.of("100")

    def test_total_rounds_half_up_to_cents(self):
        # 33.33 * 0.97 = 32.3301
        total = payable_total(Money.of("33.33"), Money.zero(), PaymentMethod.PIX, Decimal("3"))
        assert total == Money.of("32.33")

    def test_same_inputs_same_total(self):
        args = (Money.of("57.31"), Money.of("12.99"), PaymentMethod.PIX, Decimal("7.5"))
        assert payable_total(*args) == payable_total(*args)


# ── Installments ─────────────────────────────────────────────────────────────


class TestInstallmentSchedule:

    def test_one_entry_per_count(self):
        schedule = installment_schedule(Money.of("300"), 3)
        assert [i.count for i in schedule] == [1, 2, 3]
        assert schedule[2].amount == Money.of("100.00")
        assert str(schedule[2]) == "3x de R$ 100.00 (sem juros)"

    def test_capped_at_twelve(self):
        assert len(installment_schedule(Money.of("100"), 24)) == 12

    def test_at_least_one_installment(self):
        with pytest.raises(ValidationError):
            installment_schedule(Money.of("100"), 0)

    @pytest.mark.parametrize("total", ["100.00", "99.99", "0.01", "1234.57", "10.00"])
    def test_installments_stay_within_rounding_slack(self, total):
        money = Money.of(total)
        for installment in installment_schedule(money, 12):
            n = installment.count
            drift = abs(installment.amount.amount * n - money.amount)
            assert drift <= Decimal("0.01") * n
