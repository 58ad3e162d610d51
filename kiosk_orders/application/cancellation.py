from sqlalchemy.orm import Session
from typing import Optional

from kiosk_orders.core import get_logger
from kiosk_orders.domain.models import CheckoutMethod, Kiosk, Order, PaymentStatus
from kiosk_orders.infrastructure.repositories import OrderRepository, ReaderRepository
from kiosk_orders.infrastructure.sumup import TerminalGatewayError
from .errors import (
    BusinessRuleError, ForbiddenError, MalformedRequestError, OrderNotFoundError, PaymentProcessingError,
)
from .items import is_valid_id
from .payments import TerminalGateway

log = get_logger(__name__)

class CheckoutCanceller:
    """
    Asks the card reader to abort a checkout that is still in progress.

    Nothing is written locally: the order keeps its pending payment until
    the gateway's callback reports the outcome.
    """

    def __init__(self, db: Session, gateway: Optional[TerminalGateway]):
        self.db = db
        self.orders = OrderRepository(db)
        self.readers = ReaderRepository(db)
        self.gateway = gateway

    def cancel(self, kiosk: Kiosk, order_id: str) -> Order:
        if not kiosk.reader_id:
            raise BusinessRuleError("Kiosk has no reader assigned")
        if not is_valid_id(order_id):
            raise MalformedRequestError("Invalid order id")

        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found")
        if order.payment_status is None:
            raise BusinessRuleError("Order has no payment")
        if order.checkout_method != CheckoutMethod.SUMUP.value:
            raise BusinessRuleError("Only card reader checkouts can be cancelled")
        if order.kiosk_id != kiosk.id:
            raise ForbiddenError("Order belongs to another kiosk")
        if order.payment_status != PaymentStatus.PENDING.value:
            raise BusinessRuleError(f"Payment is already {order.payment_status}")

        reader = self.readers.find_by_id(kiosk.reader_id)
        if reader is None:
            raise PaymentProcessingError("Reader not found")
        if self.gateway is None:
            raise PaymentProcessingError("No payment gateway configured")

        try:
            self.gateway.cancel_checkout(reader.api_reference_id)
        except TerminalGatewayError as e:
            log.error(f"[Order: {order.id}] Reader checkout termination failed: {e}")
            raise PaymentProcessingError(f"Could not cancel reader checkout: {e}") from e

        log.info(f"[Order: {order.id}] Termination requested on reader {reader.id}")
        return order
