"""Tests for PO number formatting and the receiving decision table."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from collision_engines.numbering import format_po_number, vendor_code, year_month
from collision_engines.receiving import ReceiptCondition, ReturnReason, decide_receipt


class TestVendorCode:
    @pytest.mark.parametrize(
        "name, code",
        [
            ("Safelite AutoGlass", "SAFE"),
            ("LKQ", "LKQX"),
            ("3M", "MXXX"),
            ("O'Reilly Auto Parts", "OREI"),
            ("", "XXXX"),
            (None, "XXXX"),
        ],
    )
    def test_vendor_code(self, name, code):
        assert vendor_code(name) == code

    @given(st.text(max_size=40))
    def test_always_four_upper_letters(self, name):
        code = vendor_code(name)
        assert len(code) == 4
        assert code.isascii() and code.isalpha() and code.isupper()


class TestPoNumber:
    def test_format(self):
        assert format_po_number("RO-1024", "2501", "SAFE", 1) == "RO-1024-2501-SAFE-001"

    def test_sequence_grows_past_three_digits(self):
        assert format_po_number("7", "2512", "LKQX", 1234).endswith("-LKQX-1234")

    def test_sequence_must_be_positive(self):
        with pytest.raises(ValueError):
            format_po_number("RO-1", "2501", "SAFE", 0)

    def test_year_month(self):
        assert year_month(date(2025, 1, 15)) == "2501"
        assert year_month(datetime(2030, 12, 31, 23, 59)) == "3012"


class TestDecideReceipt:
    def test_exact_quantity(self):
        decision = decide_receipt(Decimal("5"), Decimal("5"))
        assert decision.new_status == "received"
        assert decision.counts_as_received
        assert not decision.has_variance
        assert decision.return_reason is None

    def test_short_shipment_is_partial(self):
        decision = decide_receipt(Decimal("5"), Decimal("3"))
        assert decision.new_status == "partial"
        assert decision.quantity_variance == Decimal("-2")
        assert decision.return_quantity == 0

    def test_zero_good_quantity_is_partial(self):
        assert decide_receipt(Decimal("5"), Decimal("0")).new_status == "partial"

    def test_over_delivery_owes_the_excess(self):
        decision = decide_receipt(Decimal("5"), Decimal("7"))
        assert decision.new_status == "received"
        assert decision.return_quantity == Decimal("2")
        assert decision.return_reason is ReturnReason.OVER_DELIVERY

    @pytest.mark.parametrize(
        "condition, reason",
        [
            (ReceiptCondition.DAMAGED, ReturnReason.DAMAGED),
            ("wrong_part", ReturnReason.WRONG_PART),
        ],
    )
    def test_bad_condition_returns_everything_received(self, condition, reason):
        decision = decide_receipt(Decimal("5"), Decimal("7"), condition)
        assert decision.new_status == ReceiptCondition(condition).value
        assert decision.return_quantity == Decimal("7")
        assert decision.return_reason is reason
        assert not decision.counts_as_received

    def test_damaged_nothing_received_owes_nothing(self):
        decision = decide_receipt(Decimal("5"), Decimal("0"), ReceiptCondition.DAMAGED)
        assert decision.new_status == "damaged"
        assert decision.return_reason is None

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValueError):
            decide_receipt(Decimal("5"), Decimal("-1"))

    @given(
        st.decimals(min_value=0, max_value=500, places=2),
        st.decimals(min_value=0, max_value=500, places=2),
        st.sampled_from(list(ReceiptCondition)),
    )
    def test_decision_invariants(self, ordered, received, condition):
        decision = decide_receipt(ordered, received, condition)
        assert decision.quantity_variance == received - ordered
        if decision.return_reason is not None:
            assert decision.return_quantity > 0
        assert decision.counts_as_received == (decision.new_status == "received")
