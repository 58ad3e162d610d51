import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("REDIS_URL", None)

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from kiosk_orders.auth_local import create_access_token
from kiosk_orders.domain.models import Activity, Base, Kiosk, Option, Product, Reader, Room
from kiosk_orders.infrastructure.db import SessionLocal, engine, get_db
from kiosk_orders.infrastructure.events import EventPublisher, get_event_publisher
from kiosk_orders.infrastructure.sumup import TerminalGatewayError
from kiosk_orders.api.routes import get_gateway
from kiosk_orders.main import app


class FakeGateway:
    """Terminal gateway double that records every call."""

    def __init__(self, transaction_id="tx1"):
        self.transaction_id = transaction_id
        self.checkouts = []
        self.cancellations = []
        self.fail_checkout = False
        self.fail_cancel = False

    def create_checkout(self, reader_ref, amount):
        self.checkouts.append((reader_ref, amount))
        if self.fail_checkout:
            raise TerminalGatewayError("reader offline")
        return self.transaction_id

    def cancel_checkout(self, reader_ref):
        self.cancellations.append(reader_ref)
        if self.fail_cancel:
            raise TerminalGatewayError("reader offline")


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.events = []

    def publish(self, event, data):
        self.events.append((event, data))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def db_session():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def catalog(db_session):
    """Product A at 100, option B at 50, one activity and room, three kiosks."""
    reader = Reader(api_reference_id="rdr_test_1", reader_tag="R1")
    other_reader = Reader(api_reference_id="rdr_test_2", reader_tag="R2")
    db_session.add_all([reader, other_reader])
    db_session.flush()

    kiosk = Kiosk(name="Lobby", kiosk_tag="K1", reader_id=reader.id)
    other_kiosk = Kiosk(name="Bar", kiosk_tag="K2", reader_id=other_reader.id)
    kiosk_without_reader = Kiosk(name="Hall", kiosk_tag="K3")
    product_a = Product(name="A", price=Decimal("100.00"))
    option_b = Option(name="B", price=Decimal("50.00"))
    activity = Activity(name="Bowling")
    room = Room(name="Lane 1")
    db_session.add_all([kiosk, other_kiosk, kiosk_without_reader, product_a, option_b, activity, room])
    db_session.commit()

    return SimpleNamespace(
        reader=reader,
        kiosk=kiosk,
        other_kiosk=other_kiosk,
        kiosk_without_reader=kiosk_without_reader,
        product_a=product_a,
        option_b=option_b,
        activity=activity,
        room=room,
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def client(db_session, gateway, publisher):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin', 'admin')}"}


@pytest.fixture
def kiosk_headers(catalog):
    return {"Authorization": f"Bearer {create_access_token(catalog.kiosk.id, 'kiosk')}"}


@pytest.fixture
def other_kiosk_headers(catalog):
    return {"Authorization": f"Bearer {create_access_token(catalog.other_kiosk.id, 'kiosk')}"}


def order_payload(catalog, checkout_method="later", kiosk=True, products=None, options=None):
    payload = {
        "activityId": catalog.activity.id,
        "roomId": catalog.room.id,
        "products": products if products is not None else [{"id": catalog.product_a.id, "quantity": 2}],
        "options": options if options is not None else [{"id": catalog.option_b.id, "quantity": 1}],
        "checkoutMethod": checkout_method,
    }
    if kiosk:
        payload["kioskId"] = catalog.kiosk.id
    return payload


@pytest.fixture
def make_payload(catalog):
    def _make(**kwargs):
        return order_payload(catalog, **kwargs)
    return _make
