"""
Order and payment status transitions after creation.

Fulfilment status moves pending -> confirmed -> delivered through admin
batch updates. Payment status leaves ``pending`` only through the gateway's
settlement callback.
"""

from sqlalchemy.orm import Session
from typing import List, Optional

from kiosk_orders.core import get_logger
from kiosk_orders.domain.models import ORDER_STATUSES, PAYMENT_STATUSES, Order, PaymentStatus
from kiosk_orders.infrastructure.events import ORDER_UPDATED, PAYMENT_STATUS_UPDATED, EventPublisher
from kiosk_orders.infrastructure.repositories import OrderRepository
from .errors import BusinessRuleError, MalformedRequestError, OrderNotFoundError
from .items import is_valid_id
from .schemas import OrderStatusUpdate, ReaderCallback
from .service import publish_event, publish_order_event

log = get_logger(__name__)

SETTLED_PAYMENT_STATUSES = PAYMENT_STATUSES - {PaymentStatus.PENDING.value}

class OrderStatusService:
    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.publisher = publisher or EventPublisher()

    def update_status(self, data: OrderStatusUpdate) -> List[Order]:
        """
        Move every listed order to ``data.status`` in one transaction.

        Ids that match nothing are ignored; if none match the batch is
        rejected as not found. Orders already at the target are returned
        unchanged. Backward moves are allowed.
        """
        order_ids = data.order_ids
        if not isinstance(order_ids, list) or not order_ids:
            raise MalformedRequestError("orderIds must be a non-empty list")
        if not all(is_valid_id(order_id) for order_id in order_ids):
            raise MalformedRequestError("orderIds contains an invalid id")
        if not isinstance(data.status, str) or data.status not in ORDER_STATUSES:
            raise MalformedRequestError(f"Invalid status, expected one of: {', '.join(sorted(ORDER_STATUSES))}")

        changed = []
        try:
            orders = self.orders.get_many(list(dict.fromkeys(order_ids)))
            if not orders:
                raise OrderNotFoundError("No orders found")
            for order in orders:
                if order.status == data.status:
                    continue
                try:
                    order.status = data.status
                except ValueError as e:
                    raise MalformedRequestError(str(e)) from e
                changed.append(order)
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for order in changed:
            self.db.refresh(order)
            publish_order_event(self.publisher, ORDER_UPDATED, order)
        log.info(f"Status set to {data.status} on {len(changed)} of {len(orders)} order(s)")
        return orders

    def apply_payment_callback(self, callback: ReaderCallback) -> Optional[Order]:
        """
        Record the settlement the gateway reported for a reader checkout.

        Returns None when no order carries the transaction id. Repeating the
        current status is a no-op; a settled payment never changes again.
        """
        transaction_id = callback.payload.client_transaction_id
        status = callback.payload.status
        if status not in SETTLED_PAYMENT_STATUSES:
            raise MalformedRequestError("Invalid status")
        if not transaction_id:
            raise MalformedRequestError("Missing client_transaction_id")

        order = self.orders.find_by_client_transaction_id(transaction_id)
        if order is None:
            log.warning(f"[TxID: {transaction_id}] No order for reader callback, ignoring")
            return None
        if order.payment_status == status:
            return order
        if order.payment_status != PaymentStatus.PENDING.value:
            raise BusinessRuleError(f"Payment is already {order.payment_status}")

        try:
            order.payment_status = status
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)

        log.info(f"[Order: {order.id}] Payment {status} (TxID: {transaction_id})")
        publish_order_event(self.publisher, ORDER_UPDATED, order)
        publish_event(self.publisher, PAYMENT_STATUS_UPDATED, {"orderId": order.id, "paymentStatus": order.payment_status})
        return order
