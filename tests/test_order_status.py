import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError

from kiosk_orders.application.errors import BusinessRuleError, MalformedRequestError, OrderNotFoundError
from kiosk_orders.application.schemas import OrderCreate, OrderStatusUpdate, ReaderCallback
from kiosk_orders.application.service import OrderService
from kiosk_orders.application.status import OrderStatusService
from kiosk_orders.domain.models import Order

from conftest import RecordingPublisher


@pytest.fixture
def orders(db_session, gateway, make_payload):
    service = OrderService(db_session, gateway=gateway)
    return [service.create(OrderCreate(**make_payload())) for _ in range(2)]


@pytest.fixture
def reader_order(db_session, gateway, make_payload):
    return OrderService(db_session, gateway=gateway).create(OrderCreate(**make_payload(checkout_method="sumUp")))


@pytest.fixture
def status_service(db_session, publisher):
    return OrderStatusService(db_session, publisher=publisher)


def callback(status, transaction_id="tx1"):
    return ReaderCallback(
        id="evt_1",
        event_type="solo.transaction.updated",
        payload={"client_transaction_id": transaction_id, "status": status, "merchant_code": "M1"},
        timestamp="2024-05-01T12:00:00Z",
    )


class TestUpdateStatus:
    def test_updates_every_matching_order(self, status_service, orders, publisher):
        result = status_service.update_status(OrderStatusUpdate(orderIds=[o.id for o in orders], status="confirmed"))
        assert [o.status for o in result] == ["confirmed", "confirmed"]
        assert publisher.names() == ["orderUpdated", "orderUpdated"]

    def test_unknown_ids_are_ignored(self, status_service, orders):
        result = status_service.update_status(
            OrderStatusUpdate(orderIds=[orders[0].id, str(uuid.uuid4())], status="delivered")
        )
        assert [o.id for o in result] == [orders[0].id]
        assert orders[1].status == "pending"

    def test_unchanged_orders_are_returned_without_events(self, status_service, orders, publisher):
        result = status_service.update_status(OrderStatusUpdate(orderIds=[orders[0].id], status="pending"))
        assert [o.id for o in result] == [orders[0].id]
        assert publisher.events == []

    def test_backward_moves_are_allowed(self, status_service, orders):
        ids = [orders[0].id]
        status_service.update_status(OrderStatusUpdate(orderIds=ids, status="delivered"))
        result = status_service.update_status(OrderStatusUpdate(orderIds=ids, status="pending"))
        assert result[0].status == "pending"

    def test_no_match_is_not_found(self, status_service, orders, db_session):
        with pytest.raises(OrderNotFoundError):
            status_service.update_status(OrderStatusUpdate(orderIds=[str(uuid.uuid4())], status="confirmed"))
        assert {o.status for o in db_session.query(Order)} == {"pending"}

    def test_failed_write_rolls_back_whole_batch(self, status_service, orders, db_session, publisher, monkeypatch):
        def failing_commit():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(SQLAlchemyError):
            status_service.update_status(OrderStatusUpdate(orderIds=[o.id for o in orders], status="confirmed"))
        monkeypatch.undo()

        assert [db_session.get(Order, o.id).status for o in orders] == ["pending", "pending"]
        assert publisher.events == []

    @pytest.mark.parametrize("order_ids, status", [
        ([], "confirmed"),
        (None, "confirmed"),
        (["nope"], "confirmed"),
        ("abc", "confirmed"),
        ([str(uuid.uuid4())], "shipped"),
        ([str(uuid.uuid4())], None),
    ])
    def test_malformed_batches(self, status_service, order_ids, status):
        with pytest.raises(MalformedRequestError):
            status_service.update_status(OrderStatusUpdate(orderIds=order_ids, status=status))


class TestPaymentCallback:
    def test_pending_payment_settles(self, status_service, reader_order, publisher):
        order = status_service.apply_payment_callback(callback("successful"))
        assert order.id == reader_order.id
        assert order.payment_status == "successful"
        assert publisher.names() == ["orderUpdated", "paymentStatusUpdated"]
        assert publisher.events[1][1] == {"orderId": order.id, "paymentStatus": "successful"}

    def test_publish_failure_does_not_fail_settlement(self, db_session, reader_order):
        class BrokenPublisher(RecordingPublisher):
            def publish(self, event, data):
                raise ConnectionError("redis down")

        order = OrderStatusService(db_session, publisher=BrokenPublisher()).apply_payment_callback(callback("successful"))
        assert order.payment_status == "successful"
        assert db_session.get(Order, reader_order.id).payment_status == "successful"

    def test_unknown_transaction_is_ignored(self, status_service, reader_order):
        assert status_service.apply_payment_callback(callback("failed", transaction_id="other")) is None
        assert reader_order.payment_status == "pending"

    def test_repeated_status_is_a_no_op(self, status_service, reader_order, publisher):
        status_service.apply_payment_callback(callback("failed"))
        status_service.apply_payment_callback(callback("failed"))
        assert publisher.names() == ["orderUpdated", "paymentStatusUpdated"]

    def test_settled_payment_does_not_change(self, status_service, reader_order):
        status_service.apply_payment_callback(callback("successful"))
        with pytest.raises(BusinessRuleError):
            status_service.apply_payment_callback(callback("failed"))
        assert reader_order.payment_status == "successful"

    @pytest.mark.parametrize("status", ["pending", "PAID", None])
    def test_invalid_status(self, status_service, reader_order, status):
        with pytest.raises(MalformedRequestError):
            status_service.apply_payment_callback(callback(status))
