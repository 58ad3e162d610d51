"""
Client for the SumUp card-reader API (the terminal payment gateway).

Creates a checkout on a paired reader and terminates an in-flight one. The
outcome of a checkout arrives later through the reader callback route.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import httpx

from kiosk_orders.core import get_logger
from kiosk_orders.core_settings import Settings

log = get_logger(__name__)


class TerminalGatewayError(Exception):
    """Raised when the gateway cannot be reached or rejects a request."""


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class SumUpClient:
    """
    Client for the SumUp merchant reader endpoints.
    Handles checkout creation, cancellation and error translation.
    """

    def __init__(
        self,
        api_key: str,
        merchant_code: str,
        return_url: str,
        base_url: str = "https://api.sumup.com",
        currency: str = "DKK",
        timeout: float = 8.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.merchant_code = merchant_code
        self.return_url = return_url
        self.currency = currency
        self.client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(5.0, read=timeout),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SumUpClient":
        return cls(
            api_key=settings.SUMUP_API_KEY,
            merchant_code=settings.SUMUP_MERCHANT_CODE,
            return_url=settings.SUMUP_RETURN_URL,
            base_url=settings.SUMUP_API_URL,
            currency=settings.SUMUP_CURRENCY,
            timeout=settings.SUMUP_TIMEOUT_SECONDS,
        )

    def close(self):
        self.client.close()

    def _reader_path(self, reader_ref: str, action: str) -> str:
        return f"/v0.1/merchants/{self.merchant_code}/readers/{reader_ref}/{action}"

    def _post(self, path: str, reader_ref: str, payload: Optional[dict] = None) -> httpx.Response:
        try:
            response = self.client.post(path, json=payload)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            # Outcome unknown; the reader may still show the checkout
            log.error(f"[Reader: {reader_ref}] SumUp request timed out: {e}")
            raise TerminalGatewayError("Payment gateway timed out") from e
        except httpx.HTTPStatusError as e:
            log.error(f"[Reader: {reader_ref}] SumUp rejected request (HTTP {e.response.status_code}): {e.response.text}")
            raise TerminalGatewayError(f"Payment gateway rejected the request ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            log.error(f"[Reader: {reader_ref}] SumUp unreachable: {e}")
            raise TerminalGatewayError("Payment gateway unreachable") from e

    def create_checkout(self, reader_ref: str, amount: Decimal) -> str:
        """
        Start a checkout for ``amount`` on the reader.

        Args:
            reader_ref: The gateway's reference id for the reader.
            amount: Total in major currency units.

        Returns:
            str: The client transaction id of the new checkout.

        Raises:
            TerminalGatewayError: On transport errors, error statuses or a
                response without a transaction id.
        """
        payload = {
            "total_amount": {
                "value": to_minor_units(amount),
                "currency": self.currency,
                "minor_unit": 2,
            },
            "return_url": self.return_url,
        }
        response = self._post(self._reader_path(reader_ref, "checkout"), reader_ref, payload)
        try:
            transaction_id = response.json()["data"]["client_transaction_id"]
        except (ValueError, KeyError, TypeError) as e:
            log.error(f"[Reader: {reader_ref}] SumUp checkout response without transaction id")
            raise TerminalGatewayError("Payment gateway returned no transaction id") from e
        if not transaction_id:
            raise TerminalGatewayError("Payment gateway returned no transaction id")
        log.info(f"[Reader: {reader_ref}] Checkout created (TxID: {transaction_id})")
        return transaction_id

    def cancel_checkout(self, reader_ref: str) -> None:
        """Terminate whatever checkout the reader is currently showing."""
        self._post(self._reader_path(reader_ref, "terminate"), reader_ref)
        log.info(f"[Reader: {reader_ref}] Checkout termination requested")
