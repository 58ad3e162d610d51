import uuid

import pytest

from kiosk_orders.application.cancellation import CheckoutCanceller
from kiosk_orders.application.errors import (
    BusinessRuleError, ForbiddenError, MalformedRequestError, OrderNotFoundError, PaymentProcessingError,
)
from kiosk_orders.application.schemas import OrderCreate
from kiosk_orders.application.service import OrderService


@pytest.fixture
def canceller(db_session, gateway):
    return CheckoutCanceller(db_session, gateway)


@pytest.fixture
def place(db_session, gateway, make_payload):
    def _place(checkout_method="sumUp"):
        return OrderService(db_session, gateway=gateway).create(OrderCreate(**make_payload(checkout_method=checkout_method)))
    return _place


def test_pending_reader_checkout_is_terminated(canceller, place, gateway, catalog):
    order = place()
    result = canceller.cancel(catalog.kiosk, order.id)
    assert result.id == order.id
    assert gateway.cancellations == ["rdr_test_1"]
    # Settlement arrives through the reader callback
    assert order.payment_status == "pending"


def test_cancel_is_retryable(canceller, place, gateway, catalog):
    order = place()
    canceller.cancel(catalog.kiosk, order.id)
    canceller.cancel(catalog.kiosk, order.id)
    assert gateway.cancellations == ["rdr_test_1", "rdr_test_1"]


def test_kiosk_without_reader(canceller, place, gateway, catalog):
    order = place()
    with pytest.raises(BusinessRuleError):
        canceller.cancel(catalog.kiosk_without_reader, order.id)
    assert gateway.cancellations == []


def test_invalid_and_unknown_ids(canceller, catalog):
    with pytest.raises(MalformedRequestError):
        canceller.cancel(catalog.kiosk, "nope")
    with pytest.raises(OrderNotFoundError):
        canceller.cancel(catalog.kiosk, str(uuid.uuid4()))


def test_only_reader_checkouts_can_be_cancelled(canceller, place, gateway, catalog):
    order = place("later")
    with pytest.raises(BusinessRuleError):
        canceller.cancel(catalog.kiosk, order.id)
    assert gateway.cancellations == []


def test_other_kiosks_order_is_forbidden(canceller, place, gateway, catalog):
    order = place()
    with pytest.raises(ForbiddenError):
        canceller.cancel(catalog.other_kiosk, order.id)
    assert gateway.cancellations == []


@pytest.mark.parametrize("payment_status", ["successful", "failed", "refunded"])
def test_settled_payment_cannot_be_cancelled(canceller, place, gateway, catalog, db_session, payment_status):
    order = place()
    order.payment_status = payment_status
    db_session.commit()
    with pytest.raises(BusinessRuleError):
        canceller.cancel(catalog.kiosk, order.id)
    assert gateway.cancellations == []


def test_gateway_failure_is_a_processing_error(canceller, place, gateway, catalog):
    order = place()
    gateway.fail_cancel = True
    with pytest.raises(PaymentProcessingError):
        canceller.cancel(catalog.kiosk, order.id)
    assert order.payment_status == "pending"
