"""Tests for cart and payment totals."""

from decimal import Decimal

import pytest

from apotekpos.pos.exceptions import InsufficientPayment
from apotekpos.pos.totals import (
    allocate_change,
    calculate_totals,
    line_total,
    payable_total,
    round_money,
    service_charge_for_type,
    transaction_totals,
)

from .conftest import make_item


class TestRoundMoney:
    """round_money uses banker's rounding."""

    @pytest.mark.parametrize(
        "amount,places,expected",
        [
            (Decimal("2.5"), 0, Decimal("2")),
            (Decimal("3.5"), 0, Decimal("4")),
            (Decimal("1250.125"), 2, Decimal("1250.12")),
            (Decimal("1250.135"), 2, Decimal("1250.14")),
            (Decimal("-1.234"), 2, Decimal("-1.23")),
        ],
    )
    def test_round_money(self, amount, places, expected):
        assert round_money(amount, places) == expected


class TestServiceChargeForType:
    def test_prescription_uses_service(self, parameters):
        assert service_charge_for_type("R/", parameters) == Decimal("3000")

    @pytest.mark.parametrize("line_type", ["RC", "R-Commitment"])
    def test_doctor_prescriptions_use_service_dokter(self, parameters, line_type):
        assert service_charge_for_type(line_type, parameters) == Decimal("5000")

    def test_plain_line_has_no_charge(self, parameters):
        assert service_charge_for_type("", parameters) == Decimal("0")
        assert service_charge_for_type("OTC", parameters) == Decimal("0")

    def test_no_parameters_means_no_charge(self):
        assert service_charge_for_type("R/", None) == Decimal("0")


class TestCalculateTotals:
    """Cart totals shown under the product table."""

    def test_sums_lines_with_service_discount_and_promo(self, parameters):
        items = [
            make_item(id=1, subtotal=Decimal("10000"), type="R/", discount_percentage=Decimal("10")),
            make_item(id=2, subtotal=Decimal("5000"), misc=Decimal("1000"), disc_promo=Decimal("500")),
        ]

        totals = calculate_totals(items, parameters)

        assert totals.subtotal == Decimal("15000")
        assert totals.misc == Decimal("1000")
        assert totals.service_charge == Decimal("3000")
        assert totals.discount == Decimal("1000")
        assert totals.promo == Decimal("500")
        assert totals.tot_retju == Decimal("0")
        assert totals.grand_total == Decimal("17500")

    def test_skips_unnamed_zero_quantity_and_unreturned_original_lines(self, parameters):
        items = [
            make_item(id=1, name="", subtotal=Decimal("999")),
            make_item(id=2, quantity=0, subtotal=Decimal("0"), type="R/"),
            make_item(id=3, subtotal=Decimal("8000"), is_original_return_item=True),
            make_item(id=4, subtotal=Decimal("2000")),
        ]

        totals = calculate_totals(items, parameters)

        assert totals.subtotal == Decimal("2000")
        assert totals.service_charge == Decimal("0")

    def test_returned_lines_count_negative(self, parameters):
        items = [
            make_item(
                id=1,
                type="RC",
                quantity=-2,
                subtotal=Decimal("-16000"),
                total=Decimal("-21000"),
                is_original_return_item=True,
                is_deleted=True,
            ),
            make_item(id=2, subtotal=Decimal("5000"), total=Decimal("5000")),
        ]

        totals = calculate_totals(items, parameters, is_return=True)

        assert totals.subtotal == Decimal("-11000")
        assert totals.service_charge == Decimal("-5000")
        assert totals.tot_retju == Decimal("21000")

    def test_tot_retju_only_for_returns(self, parameters):
        items = [make_item(quantity=-1, subtotal=Decimal("-5000"), total=Decimal("-5000"))]

        assert calculate_totals(items, parameters).tot_retju == Decimal("0")

    def test_no_parameters_gives_zero_service_charge(self):
        items = [make_item(type="R/")]

        assert calculate_totals(items, None).service_charge == Decimal("0")


class TestLineTotal:
    def test_line_total(self):
        item = make_item(
            subtotal=Decimal("20000"),
            sc=Decimal("3000"),
            misc=Decimal("500"),
            discount_percentage=Decimal("5"),
            disc_promo=Decimal("1000"),
        )

        assert line_total(item) == Decimal("21500")


class TestPayableTotal:
    def test_uses_line_service_charge(self):
        items = [
            make_item(id=1, subtotal=Decimal("10000"), sc=Decimal("3000"), discount_percentage=Decimal("10")),
            make_item(id=2, subtotal=Decimal("4000"), misc=Decimal("200"), disc_promo=Decimal("400")),
        ]

        assert payable_total(items) == Decimal("15800")

    def test_transaction_totals_block(self):
        items = [
            make_item(id=1, subtotal=Decimal("10000"), sc=Decimal("3000"), discount_percentage=Decimal("10")),
            make_item(
                id=2,
                quantity=-1,
                subtotal=Decimal("-4000"),
                total=Decimal("-4000"),
                is_original_return_item=True,
                is_deleted=True,
            ),
        ]

        totals = transaction_totals(items, is_return=True)

        assert totals.sub_total == Decimal("6000")
        assert totals.total_service_fee == Decimal("3000")
        assert totals.total_discount == Decimal("1000")
        assert totals.correct_total_amount == Decimal("8000")
        assert totals.tot_retju == Decimal("4000")


class TestAllocateChange:
    """Change goes to a single payment method."""

    def test_exact_cash_has_no_change(self):
        result = allocate_change(Decimal("15000"), cash=Decimal("15000"))

        assert result.total_paid == Decimal("15000")
        assert (result.change_cash, result.change_dc, result.change_cc) == (0, 0, 0)

    def test_cash_overpayment_is_cash_change(self):
        result = allocate_change(Decimal("15000"), cash=Decimal("20000"))

        assert result.change_cash == Decimal("5000")
        assert result.change_dc == 0
        assert result.change_cc == 0

    def test_change_prefers_credit_when_it_covers(self):
        result = allocate_change(Decimal("15000"), cash=Decimal("10000"), credit=Decimal("10000"))

        assert result.change_cc == Decimal("5000")
        assert result.change_cash == 0

    def test_change_falls_back_to_debit(self):
        result = allocate_change(
            Decimal("15000"),
            cash=Decimal("10000"),
            debit=Decimal("8000"),
            credit=Decimal("1000"),
        )

        assert result.change_dc == Decimal("4000")
        assert result.change_cc == 0

    def test_underpayment_raises(self):
        with pytest.raises(InsufficientPayment) as exc_info:
            allocate_change(Decimal("15000"), cash=Decimal("10000"))

        assert exc_info.value.message == "Payment amount is less than total amount required."
