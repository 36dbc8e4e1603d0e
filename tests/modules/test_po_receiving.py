"""Tests for receiving, backorders, installation and vendor metrics."""

from decimal import Decimal
from uuid import uuid4

import pytest

from collision_kernel.exceptions import (
    InvalidStateTransitionError,
    PurchaseOrderNotFoundError,
    VendorNotFoundError,
)
from collision_modules.procurement.models import (
    PartLineStatus,
    POStatus,
    ReceiptCondition,
    ReceiveItem,
    ReturnReason,
)


def _item(line, quantity, condition=ReceiptCondition.GOOD, notes=None):
    return ReceiveItem(line.id, Decimal(quantity), condition, notes)


@pytest.fixture
def receive(procurement_service, test_actor_id):
    def _receive(po, *items):
        return procurement_service.receive(po.id, list(items), actor_id=test_actor_id)

    return _receive


class TestReceive:
    def test_exact_quantity(self, procurement_service, ordered_po, receive):
        po, (line,), _ = ordered_po("5")

        result = receive(po, _item(line, "5"))

        assert result.po_status is POStatus.RECEIVED
        item = result.items[0]
        assert item.status == "processed"
        assert item.new_status is PartLineStatus.RECEIVED
        assert item.quantity_variance == Decimal("0")
        assert item.message == "Received 5 of 5 ordered"
        assert result.returns == ()

        stored = procurement_service.get_part_line(line.id)
        assert stored.received_quantity == Decimal("5")
        assert stored.received_date is not None
        assert procurement_service.get_purchase_order(po.id).received_date is not None

    def test_identical_report_is_a_no_op(self, ordered_po, receive):
        po, (line,), _ = ordered_po("5")
        receive(po, _item(line, "5"))

        again = receive(po, _item(line, "5"))

        assert again.items[0].unchanged
        assert again.po_status is POStatus.RECEIVED
        assert again.returns == ()

    def test_over_delivery_records_one_return(self, procurement_service, ordered_po, receive):
        po, (line,), _ = ordered_po("5")

        first = receive(po, _item(line, "7"))
        second = receive(po, _item(line, "7"))

        assert first.items[0].new_status is PartLineStatus.RECEIVED
        assert first.items[0].quantity_variance == Decimal("2")
        (ret,) = first.returns
        assert ret.quantity == Decimal("2")
        assert ret.reason is ReturnReason.OVER_DELIVERY
        assert second.returns == ()
        assert len(procurement_service.list_returns(po.id)) == 1

    def test_corrected_count_records_only_the_difference(self, procurement_service, ordered_po, receive):
        po, (line,), _ = ordered_po("5")
        receive(po, _item(line, "7"))

        corrected = receive(po, _item(line, "8"))

        assert [r.quantity for r in corrected.returns] == [Decimal("1")]
        owed = sum(r.quantity for r in procurement_service.list_returns(po.id))
        assert owed == Decimal("3")

    def test_short_shipment_leaves_po_partial(self, ordered_po, receive):
        po, (line,), _ = ordered_po("5")

        result = receive(po, _item(line, "3"))

        assert result.items[0].new_status is PartLineStatus.PARTIAL
        assert result.items[0].message == "Received 3 of 5 ordered"
        assert result.po_status is POStatus.PARTIAL

    def test_po_received_once_every_line_is(self, ordered_po, receive):
        po, lines, _ = ordered_po("5", "2")
        first, second = sorted(lines, key=lambda p: p.part_number)

        assert receive(po, _item(first, "5")).po_status is POStatus.PARTIAL
        assert receive(po, _item(second, "2")).po_status is POStatus.RECEIVED

    def test_damaged_goods_are_returned(self, procurement_service, ordered_po, receive):
        po, (line,), _ = ordered_po("5")

        result = receive(po, _item(line, "5", ReceiptCondition.DAMAGED, notes="cracked in transit"))

        assert result.items[0].new_status is PartLineStatus.DAMAGED
        assert result.po_status is POStatus.PARTIAL
        (ret,) = result.returns
        assert (ret.quantity, ret.reason, ret.notes) == (Decimal("5"), ReturnReason.DAMAGED, "cracked in transit")

        replacement = receive(po, _item(line, "5"))
        assert replacement.po_status is POStatus.RECEIVED
        assert len(procurement_service.list_returns(po.id)) == 1

    def test_wrong_part(self, ordered_po, receive):
        po, (line,), _ = ordered_po("1")
        result = receive(po, _item(line, "1", "wrong_part"))
        assert result.items[0].new_status is PartLineStatus.WRONG_PART
        assert result.returns[0].reason is ReturnReason.WRONG_PART

    def test_line_not_on_the_po_is_an_error_item(self, ordered_po, receive):
        po, (line,), _ = ordered_po("5")
        stray = ReceiveItem(uuid4(), Decimal("1"))

        result = receive(po, stray, _item(line, "5"))

        assert result.error_count == 1
        assert result.processed_count == 1
        error = result.items[0]
        assert error.is_error
        assert error.message == "Part line not found in this PO"
        assert error.error_code == "PART_LINE_NOT_FOUND"
        assert result.po_status is POStatus.RECEIVED

    def test_installed_line_cannot_be_received_again(self, procurement_service, ordered_po, receive,
                                                     test_actor_id):
        po, (first, second), _ = ordered_po("1", "1")
        receive(po, _item(first, "1"), _item(second, "1"))
        procurement_service.install_parts([first.id], actor_id=test_actor_id)

        result = receive(po, _item(first, "2"), _item(second, "1"))

        assert result.items[0].error_code == "INVALID_STATE_TRANSITION"
        assert result.items[1].unchanged
        assert procurement_service.get_part_line(first.id).status is PartLineStatus.INSTALLED

    def test_received_notification(self, ordered_po, receive, notifications):
        po, (line,), _ = ordered_po("5")
        receive(po, _item(line, "7"))

        (event,) = notifications.of_type("po_received")
        assert event["po_id"] == str(po.id)
        assert event["status"] == "received"
        assert event["return_count"] == 1

    def test_cancelled_po_cannot_be_received(self, procurement_service, ordered_po, receive, test_actor_id):
        po, (line,), _ = ordered_po("5")
        procurement_service.cancel_purchase_order(po.id, actor_id=test_actor_id)

        with pytest.raises(InvalidStateTransitionError):
            receive(po, _item(line, "5"))

    def test_unknown_po(self, procurement_service, test_actor_id):
        with pytest.raises(PurchaseOrderNotFoundError):
            procurement_service.receive(uuid4(), [], actor_id=test_actor_id)

    def test_negative_quantity_rejected_by_the_item(self):
        with pytest.raises(ValueError):
            ReceiveItem(uuid4(), Decimal("-1"))

    def test_unknown_condition_fails_only_its_line(self, procurement_service, ordered_po, receive):
        po, lines, _ = ordered_po("5", "3")
        five, three = sorted(lines, key=lambda p: p.quantity_ordered, reverse=True)

        result = receive(po, _item(five, "5"), _item(three, "3", condition="broken"))

        good, bad = result.items
        assert good.status == "processed"
        assert bad.status == "error"
        assert bad.error_code == "INVALID_RECEIPT_CONDITION"
        assert "'broken'" in bad.message
        assert result.po_status is POStatus.PARTIAL
        assert procurement_service.get_part_line(five.id).status is PartLineStatus.RECEIVED
        untouched = procurement_service.get_part_line(three.id)
        assert untouched.status is PartLineStatus.ORDERED
        assert untouched.received_quantity is None

    def test_condition_given_as_text(self, procurement_service, ordered_po, receive):
        po, (line,), _ = ordered_po("2")

        result = receive(po, _item(line, "2", condition="damaged"))

        assert result.items[0].new_status is PartLineStatus.DAMAGED

    def test_logs_carry_po_id(self, ordered_po, receive, captured_logs):
        po, (line,), _ = ordered_po("5")
        receive(po, _item(line, "5"))

        committed = [r for r in captured_logs() if r["message"] == "receive_committed"][0]
        assert committed["po_id"] == str(po.id)
        assert committed["po_status"] == "received"


class TestBackorder:
    def test_backordered_line_can_still_be_received(self, procurement_service, ordered_po, receive,
                                                    test_actor_id):
        po, (line,), _ = ordered_po("2")

        (backordered,) = procurement_service.mark_backordered([line.id], actor_id=test_actor_id)
        assert backordered.status is PartLineStatus.BACKORDERED

        assert receive(po, _item(line, "2")).po_status is POStatus.RECEIVED

    def test_needed_line_cannot_be_backordered(self, procurement_service, create_part_line, test_actor_id):
        line = create_part_line()
        with pytest.raises(InvalidStateTransitionError):
            procurement_service.mark_backordered([line.id], actor_id=test_actor_id)


class TestInstall:
    def test_install_received_parts(self, procurement_service, ordered_po, receive, test_actor_id,
                                    notifications):
        po, (line,), _ = ordered_po("2")
        receive(po, _item(line, "2"))

        (installed,) = procurement_service.install_parts([line.id], actor_id=test_actor_id)

        assert installed.status is PartLineStatus.INSTALLED
        assert installed.installed_quantity == Decimal("2")
        assert installed.installed_date is not None
        (event,) = notifications.of_type("parts_installed")
        assert event["ro_numbers"] == ["RO-1024"]

    def test_partial_line_cannot_be_installed(self, procurement_service, ordered_po, receive, test_actor_id):
        po, (line,), _ = ordered_po("2")
        receive(po, _item(line, "1"))

        with pytest.raises(InvalidStateTransitionError):
            procurement_service.install_parts([line.id], actor_id=test_actor_id)

    def test_cannot_install_more_than_received(self, procurement_service, ordered_po, receive, test_actor_id):
        po, (line,), _ = ordered_po("2")
        receive(po, _item(line, "2"))

        with pytest.raises(ValueError):
            procurement_service.install_parts(
                [line.id], actor_id=test_actor_id, installed_quantity=Decimal("3"),
            )
        assert procurement_service.get_part_line(line.id).status is PartLineStatus.RECEIVED


class TestVendorMetrics:
    def test_metrics(self, procurement_service, ordered_po, receive):
        po, lines, vendor = ordered_po("5", "2")
        big, small = sorted(lines, key=lambda p: p.quantity_ordered, reverse=True)
        receive(po, _item(big, "7"), _item(small, "1"))

        metrics = procurement_service.vendor_metrics(vendor.id)

        assert metrics.total_orders == 1
        assert metrics.open_orders == 1
        assert metrics.received_orders == 0
        assert metrics.total_spend == Decimal("756.00")
        assert metrics.ordered_quantity == Decimal("7")
        assert metrics.received_quantity == Decimal("6")
        assert metrics.returned_quantity == Decimal("2")
        assert metrics.fill_rate == Decimal("0.8571")

    def test_vendor_without_orders(self, procurement_service, create_vendor):
        vendor = create_vendor("Keystone Automotive")
        metrics = procurement_service.vendor_metrics(vendor.id)
        assert metrics.total_orders == 0
        assert metrics.fill_rate == Decimal("0")

    def test_unknown_vendor(self, procurement_service):
        with pytest.raises(VendorNotFoundError):
            procurement_service.vendor_metrics(uuid4())
