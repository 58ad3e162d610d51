from decimal import Decimal
import json

import httpx
import pytest

from kiosk_orders.api.routes import close_gateway, get_gateway
from kiosk_orders.infrastructure.sumup import SumUpClient, TerminalGatewayError, to_minor_units


def make_client(handler):
    return SumUpClient(
        api_key="sk_test",
        merchant_code="MC123",
        return_url="https://kiosk.example/reader-callback",
        base_url="https://api.sumup.test",
        transport=httpx.MockTransport(handler),
    )


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("250")) == 25000
    assert to_minor_units(Decimal("9.995")) == 1000


def test_create_checkout_posts_amount_to_reader():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"client_transaction_id": "tx1"}})

    client = make_client(handler)
    assert client.create_checkout("rdr_1", Decimal("250.00")) == "tx1"
    assert seen["path"] == "/v0.1/merchants/MC123/readers/rdr_1/checkout"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["body"] == {
        "total_amount": {"value": 25000, "currency": "DKK", "minor_unit": 2},
        "return_url": "https://kiosk.example/reader-callback",
    }


def test_cancel_checkout_terminates_reader():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(202)

    make_client(handler).cancel_checkout("rdr_1")
    assert paths == ["/v0.1/merchants/MC123/readers/rdr_1/terminate"]


@pytest.mark.parametrize("response", [
    httpx.Response(422, json={"errors": {"detail": "Reader offline"}}),
    httpx.Response(201, json={"data": {}}),
    httpx.Response(201, json={"data": {"client_transaction_id": ""}}),
    httpx.Response(201, text="not json"),
])
def test_bad_checkout_responses(response):
    client = make_client(lambda request: response)
    with pytest.raises(TerminalGatewayError):
        client.create_checkout("rdr_1", Decimal("10"))


@pytest.mark.parametrize("exc", [httpx.ReadTimeout("slow"), httpx.ConnectError("down")])
def test_transport_errors(exc):
    def handler(request):
        raise exc

    with pytest.raises(TerminalGatewayError):
        make_client(handler).cancel_checkout("rdr_1")


def test_cached_gateway_is_closed_on_shutdown():
    gateway = get_gateway()
    close_gateway()
    assert gateway.client.is_closed
    assert get_gateway.cache_info().currsize == 0
    # Nothing cached, nothing to close
    close_gateway()
