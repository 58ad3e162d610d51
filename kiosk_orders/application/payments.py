"""
Payment routing: turns a checkout method into the payment an order is
created with.

``later`` and ``manual`` orders are settled by policy at order time.
``sumUp`` orders start a checkout on the kiosk's card reader and stay
pending until the gateway reports back. ``mobilePay`` is recognised but
not offered yet.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from kiosk_orders.core import get_logger
from kiosk_orders.domain.models import CheckoutMethod, Kiosk, PaymentStatus, Reader
from kiosk_orders.infrastructure.sumup import TerminalGatewayError
from .errors import BusinessRuleError, NotImplementedMethodError, PaymentProcessingError

log = get_logger(__name__)


@dataclass
class PaymentRecord:
    payment_status: PaymentStatus
    client_transaction_id: Optional[str] = None


class TerminalGateway(Protocol):
    def create_checkout(self, reader_ref: str, amount: Decimal) -> str: ...

    def cancel_checkout(self, reader_ref: str) -> None: ...


class KioskLookup(Protocol):
    def find_by_id(self, kiosk_id: str) -> Optional[Kiosk]: ...


class ReaderLookup(Protocol):
    def find_by_id(self, reader_id: str) -> Optional[Reader]: ...


class PaymentRoutingError(PaymentProcessingError):
    """The terminal checkout could not be started."""


def resolve_reader_reference(kiosk: Optional[Kiosk], readers: ReaderLookup) -> str:
    """Gateway reference of the reader assigned to ``kiosk``."""
    if kiosk is None:
        raise PaymentRoutingError("Kiosk not found")
    if not kiosk.reader_id:
        raise PaymentRoutingError("Kiosk has no reader assigned")
    reader = readers.find_by_id(kiosk.reader_id)
    if reader is None:
        raise PaymentRoutingError("Reader not found")
    return reader.api_reference_id


class PaymentRouter:
    def __init__(self, kiosks: KioskLookup, readers: ReaderLookup, gateway: Optional[TerminalGateway]):
        self.kiosks = kiosks
        self.readers = readers
        self.gateway = gateway

    def route(self, checkout_method: str, kiosk_id: Optional[str], subtotal: Decimal) -> PaymentRecord:
        """
        Produce the initial payment for an order.

        Raises:
            NotImplementedMethodError: For ``mobilePay``.
            BusinessRuleError: For a terminal charge of zero.
            PaymentRoutingError: When the terminal checkout cannot be created.
        """
        method = CheckoutMethod(checkout_method)

        if method in (CheckoutMethod.LATER, CheckoutMethod.MANUAL):
            return PaymentRecord(payment_status=PaymentStatus.SUCCESSFUL)

        if method == CheckoutMethod.MOBILE_PAY:
            raise NotImplementedMethodError("MobilePay is not implemented yet")

        if subtotal <= 0:
            raise BusinessRuleError("Subtotal must be greater than 0 for card reader checkout")

        reader_ref = resolve_reader_reference(self.kiosks.find_by_id(kiosk_id) if kiosk_id else None, self.readers)
        if self.gateway is None:
            raise PaymentRoutingError("No payment gateway configured")

        log.debug(f"[Kiosk: {kiosk_id}] Creating reader checkout for {subtotal}")
        try:
            transaction_id = self.gateway.create_checkout(reader_ref, subtotal)
        except TerminalGatewayError as e:
            raise PaymentRoutingError(f"Could not create reader checkout: {e}") from e
        if not transaction_id:
            raise PaymentRoutingError("Payment gateway returned no transaction id")

        return PaymentRecord(payment_status=PaymentStatus.PENDING, client_transaction_id=transaction_id)
