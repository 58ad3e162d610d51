from decimal import Decimal
from types import SimpleNamespace

import pytest

from kiosk_orders.application.errors import BusinessRuleError, NotImplementedMethodError, PaymentProcessingError
from kiosk_orders.application.payments import PaymentRouter
from kiosk_orders.domain.models import PaymentStatus

from conftest import FakeGateway


class Lookup:
    def __init__(self, **records):
        self.records = records

    def find_by_id(self, record_id):
        return self.records.get(record_id)


def make_router(gateway, kiosk_reader="r1", readers=None):
    kiosks = Lookup(k1=SimpleNamespace(id="k1", reader_id=kiosk_reader))
    if readers is None:
        readers = Lookup(r1=SimpleNamespace(id="r1", api_reference_id="rdr_ref"))
    return PaymentRouter(kiosks, readers, gateway)


@pytest.mark.parametrize("method", ["later", "manual"])
def test_deferred_and_manual_orders_are_settled(method):
    gateway = FakeGateway()
    payment = make_router(gateway).route(method, None, Decimal("0"))
    assert payment.payment_status == PaymentStatus.SUCCESSFUL
    assert payment.client_transaction_id is None
    assert gateway.checkouts == []


def test_mobile_pay_is_not_implemented():
    with pytest.raises(NotImplementedMethodError):
        make_router(FakeGateway()).route("mobilePay", "k1", Decimal("10"))


def test_reader_checkout_starts_pending_payment():
    gateway = FakeGateway("tx1")
    payment = make_router(gateway).route("sumUp", "k1", Decimal("250"))
    assert payment.payment_status == PaymentStatus.PENDING
    assert payment.client_transaction_id == "tx1"
    assert gateway.checkouts == [("rdr_ref", Decimal("250"))]


def test_zero_reader_charge_is_rejected_before_gateway():
    gateway = FakeGateway()
    with pytest.raises(BusinessRuleError):
        make_router(gateway).route("sumUp", "k1", Decimal("0"))
    assert gateway.checkouts == []


@pytest.mark.parametrize("kiosk_id, kiosk_reader, readers", [
    ("missing", "r1", None),
    ("k1", None, None),
    ("k1", "r1", Lookup()),
])
def test_unresolvable_reader_is_a_processing_failure(kiosk_id, kiosk_reader, readers):
    gateway = FakeGateway()
    with pytest.raises(PaymentProcessingError):
        make_router(gateway, kiosk_reader, readers).route("sumUp", kiosk_id, Decimal("10"))
    assert gateway.checkouts == []


def test_gateway_failure_is_a_processing_failure():
    gateway = FakeGateway()
    gateway.fail_checkout = True
    with pytest.raises(PaymentProcessingError):
        make_router(gateway).route("sumUp", "k1", Decimal("10"))


def test_missing_transaction_id_is_a_processing_failure():
    with pytest.raises(PaymentProcessingError):
        make_router(FakeGateway(transaction_id="")).route("sumUp", "k1", Decimal("10"))
