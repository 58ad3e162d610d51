from sqlalchemy.orm import Session
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from kiosk_orders.core import get_logger
from kiosk_orders.domain.models import (
    CHECKOUT_METHODS, ORDER_STATUSES, CheckoutMethod, Kiosk, Order, OrderOption, OrderProduct, OrderStatus,
)
from kiosk_orders.infrastructure.events import ORDER_CREATED, EventPublisher
from kiosk_orders.infrastructure.repositories import (
    CatalogRepository, KioskRepository, OrderRepository, ReaderRepository,
)
from kiosk_orders.infrastructure.sumup import TerminalGatewayError
from .errors import BusinessRuleError, ForbiddenError, MalformedRequestError, OrderNotFoundError
from .items import MAX_QUANTITY, OrderItem, combine, compute_subtotal, is_order_item_list, is_valid_id, parse_items, remove_zero
from .payments import PaymentRouter, PaymentRoutingError, TerminalGateway, resolve_reader_reference
from .schemas import OrderCreate, OrderRead

log = get_logger(__name__)

# Largest amount the subtotal column holds, Numeric(10, 2)
MAX_SUBTOTAL = Decimal("99999999.99")

def publish_event(publisher: EventPublisher, event: str, data: dict) -> None:
    """Best-effort notification; never fails the operation that triggered it."""
    try:
        publisher.publish(event, data)
    except Exception:
        log.warning(f"[Order: {data.get('id') or data.get('orderId')}] Could not publish {event}", exc_info=True)

def publish_order_event(publisher: EventPublisher, event: str, order: Order) -> None:
    publish_event(publisher, event, OrderRead.from_order(order).to_event())

def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

class OrderService:
    """
    Order checkout: validates a cart, prices it, obtains a payment and
    persists the order together with that payment in one write.

    Catalog, kiosk and reader lookups default to the database-backed
    repositories and can be replaced for tests.
    """

    def __init__(
        self,
        db: Session,
        gateway: Optional[TerminalGateway] = None,
        publisher: Optional[EventPublisher] = None,
        catalog=None,
        kiosks=None,
        readers=None,
    ):
        self.db = db
        self.orders = OrderRepository(db)
        self.catalog = catalog or CatalogRepository(db)
        self.kiosks = kiosks or KioskRepository(db)
        self.readers = readers or ReaderRepository(db)
        self.gateway = gateway
        self.publisher = publisher or EventPublisher()
        self.payments = PaymentRouter(self.kiosks, self.readers, gateway)

    def _validate_create(self, data: OrderCreate) -> Tuple[str, List[OrderItem], List[OrderItem]]:
        method = data.checkout_method
        is_manual = method == CheckoutMethod.MANUAL.value

        products = data.products if data.products is not None else []
        if not is_order_item_list(products):
            raise MalformedRequestError("Products must be a list of {id, quantity} with whole, non-negative quantities")
        if not products and not is_manual:
            raise BusinessRuleError("At least one product is required")

        if data.options is not None and not is_order_item_list(data.options):
            raise MalformedRequestError("Options must be a list of {id, quantity} with whole, non-negative quantities")

        if data.kiosk_id is not None and not is_valid_id(data.kiosk_id):
            raise MalformedRequestError("Invalid kioskId")
        if not is_valid_id(data.activity_id):
            raise MalformedRequestError("Invalid activityId")
        if not is_valid_id(data.room_id):
            raise MalformedRequestError("Invalid roomId")

        if not isinstance(method, str) or method not in CHECKOUT_METHODS:
            raise MalformedRequestError(f"Invalid checkoutMethod, expected one of: {', '.join(sorted(CHECKOUT_METHODS))}")

        if is_manual and data.kiosk_id is not None:
            raise BusinessRuleError("Manual orders cannot have a kioskId")
        if not is_manual and data.kiosk_id is None:
            raise BusinessRuleError("kioskId is required for this checkout method")

        return method, parse_items(products), parse_items(data.options)

    def create(self, data: OrderCreate) -> Order:
        """
        Place an order.

        Raises:
            MalformedRequestError, BusinessRuleError, ReferenceNotFoundError,
            NotImplementedMethodError, PaymentProcessingError
        """
        log.debug(f"Creating {data.checkout_method} order")
        method, products, options = self._validate_create(data)

        products = remove_zero(products)
        options = remove_zero(options)
        if not products and method != CheckoutMethod.MANUAL.value:
            raise BusinessRuleError("At least one product with a quantity above 0 is required")

        products = combine(products)
        options = combine(options)
        if any(item.quantity > MAX_QUANTITY for item in products + options):
            raise BusinessRuleError(f"Quantity per item cannot exceed {MAX_QUANTITY}")
        subtotal = compute_subtotal(products, options, self.catalog)
        if subtotal > MAX_SUBTOTAL:
            raise BusinessRuleError(f"Subtotal cannot exceed {MAX_SUBTOTAL}")

        order = Order(
            activity_id=data.activity_id,
            room_id=data.room_id,
            kiosk_id=data.kiosk_id,
            status=OrderStatus.PENDING.value,
            checkout_method=method,
            subtotal=subtotal,
            products=[OrderProduct(product_id=i.item_id, quantity=i.quantity, position=n) for n, i in enumerate(products)],
            options=[OrderOption(option_id=i.item_id, quantity=i.quantity, position=n) for n, i in enumerate(options)],
        )
        # Reject dangling references before anything is charged on a reader
        self.orders.validate_references(order)

        payment = self.payments.route(method, data.kiosk_id, subtotal)
        order.payment_status = payment.payment_status.value
        order.client_transaction_id = payment.client_transaction_id

        try:
            self.orders.add(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            if payment.client_transaction_id:
                self._release_checkout(data.kiosk_id, payment.client_transaction_id)
            raise

        self.db.refresh(order)
        log.info(f"[Order: {order.id}] Created ({method}, subtotal {subtotal}, payment {order.payment_status})")
        publish_order_event(self.publisher, ORDER_CREATED, order)
        return order

    def _release_checkout(self, kiosk_id: str, client_transaction_id: str) -> None:
        """Terminate a reader checkout whose order could not be stored."""
        log.warning(f"[TxID: {client_transaction_id}] Order write failed, terminating reader checkout")
        try:
            reader_ref = resolve_reader_reference(self.kiosks.find_by_id(kiosk_id), self.readers)
            self.gateway.cancel_checkout(reader_ref)
        except (PaymentRoutingError, TerminalGatewayError) as e:
            log.critical(f"[TxID: {client_transaction_id}] Could not terminate reader checkout: {e}. Manual action required")

    def list(
        self,
        status: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[Order]:
        statuses = None
        if status:
            statuses = [s.strip() for s in status.split(",") if s.strip()]
            invalid = [s for s in statuses if s not in ORDER_STATUSES]
            if invalid:
                raise MalformedRequestError(f"Invalid status: {', '.join(invalid)}")
        from_date = _as_utc_naive(from_date)
        to_date = _as_utc_naive(to_date)
        if from_date is not None and to_date is not None and from_date > to_date:
            return []
        return self.orders.list(statuses, from_date, to_date)

    def get_payment_for_kiosk(self, kiosk: Kiosk, order_id: str) -> Order:
        if not is_valid_id(order_id):
            raise MalformedRequestError("Invalid order id")
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found")
        if order.kiosk_id != kiosk.id:
            raise ForbiddenError("Order belongs to another kiosk")
        return order
