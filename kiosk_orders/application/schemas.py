from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Optional

from kiosk_orders.domain.models import Order

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# Requests. Fields stay loosely typed so the services can reject them in a
# fixed order with a specific reason each.

class OrderCreate(CamelModel):
    activity_id: Any = None
    room_id: Any = None
    kiosk_id: Any = None
    products: Any = None
    options: Any = None
    checkout_method: Any = None

class OrderStatusUpdate(CamelModel):
    order_ids: Any = None
    status: Any = None

class ReaderCallbackPayload(BaseModel):
    client_transaction_id: Optional[str] = None
    merchant_code: Optional[str] = None
    status: Optional[str] = None
    transaction_id: Optional[str] = None

class ReaderCallback(BaseModel):
    id: Optional[str] = None
    event_type: Optional[str] = None
    payload: ReaderCallbackPayload
    timestamp: Optional[str] = None

# Responses

class OrderItemRead(CamelModel):
    id: str
    quantity: int

class OrderRead(CamelModel):
    id: str
    products: list[OrderItemRead]
    options: list[OrderItemRead]
    activity_id: str
    room_id: str
    kiosk_id: Optional[str] = None
    status: str
    payment_status: Optional[str] = None
    checkout_method: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderRead":
        return cls(
            id=order.id,
            products=[OrderItemRead(id=p.product_id, quantity=p.quantity) for p in order.products],
            options=[OrderItemRead(id=o.option_id, quantity=o.quantity) for o in order.options],
            activity_id=order.activity_id,
            room_id=order.room_id,
            kiosk_id=order.kiosk_id,
            status=order.status,
            payment_status=order.payment_status,
            checkout_method=order.checkout_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def to_event(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

class OrderPaymentRead(CamelModel):
    """Payment details visible only to the kiosk that placed the order"""
    order_id: str
    checkout_method: str
    payment_status: Optional[str] = None
    client_transaction_id: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderPaymentRead":
        return cls(
            order_id=order.id,
            checkout_method=order.checkout_method,
            payment_status=order.payment_status,
            client_transaction_id=order.client_transaction_id,
        )

class CancelAccepted(CamelModel):
    order_id: str
    message: str = "Cancellation requested"

class CallbackResult(BaseModel):
    message: str
