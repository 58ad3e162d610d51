from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime
from functools import lru_cache
from typing import Optional

from kiosk_orders.core_settings import get_settings
from kiosk_orders.domain.models import CheckoutMethod, Kiosk
from kiosk_orders.infrastructure.db import get_db
from kiosk_orders.infrastructure.events import EventPublisher, get_event_publisher
from kiosk_orders.infrastructure.sumup import SumUpClient
from kiosk_orders.application.cancellation import CheckoutCanceller
from kiosk_orders.application.errors import ForbiddenError
from kiosk_orders.application.payments import TerminalGateway
from kiosk_orders.application.schemas import (
    CallbackResult, CancelAccepted, OrderCreate, OrderPaymentRead, OrderRead, OrderStatusUpdate, ReaderCallback,
)
from kiosk_orders.application.service import OrderService
from kiosk_orders.application.status import OrderStatusService
from .security import Principal, get_principal, require_admin, require_kiosk

@lru_cache
def get_gateway() -> TerminalGateway:
    return SumUpClient.from_settings(get_settings())

def close_gateway() -> None:
    """Release the cached gateway client, if one was created."""
    if get_gateway.cache_info().currsize:
        get_gateway().close()
        get_gateway.cache_clear()

router = APIRouter(prefix="/orders", tags=["orders"])

@router.post("", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    gateway: TerminalGateway = Depends(get_gateway),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    """Place an order. Staff place manual orders, kiosks everything else."""
    if payload.checkout_method == CheckoutMethod.MANUAL.value:
        if not principal.is_admin:
            raise ForbiddenError("Only staff can place manual orders")
    else:
        if not principal.is_kiosk:
            raise ForbiddenError("Only kiosks can place this kind of order")
        if isinstance(payload.kiosk_id, str) and payload.kiosk_id != principal.subject:
            raise ForbiddenError("Kiosks can only order for themselves")
    order = OrderService(db, gateway=gateway, publisher=publisher).create(payload)
    return OrderRead.from_order(order)

@router.get("", response_model=list[OrderRead])
def list_orders(
    status: Optional[str] = Query(None),
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    orders = OrderService(db).list(status, from_date, to_date)
    return [OrderRead.from_order(o) for o in orders]

@router.patch("", response_model=list[OrderRead])
def update_order_status(
    payload: OrderStatusUpdate,
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    orders = OrderStatusService(db, publisher=publisher).update_status(payload)
    return [OrderRead.from_order(o) for o in orders]

@router.get("/{order_id}/payment", response_model=OrderPaymentRead)
def get_order_payment(order_id: str, kiosk: Kiosk = Depends(require_kiosk), db: Session = Depends(get_db)):
    order = OrderService(db).get_payment_for_kiosk(kiosk, order_id)
    return OrderPaymentRead.from_order(order)

@router.post("/{order_id}/cancel", response_model=CancelAccepted, status_code=202)
def cancel_order(
    order_id: str,
    kiosk: Kiosk = Depends(require_kiosk),
    db: Session = Depends(get_db),
    gateway: TerminalGateway = Depends(get_gateway),
):
    """Ask the kiosk's reader to abort the checkout; the callback settles the payment."""
    order = CheckoutCanceller(db, gateway).cancel(kiosk, order_id)
    return CancelAccepted(order_id=order.id)

callback_router = APIRouter(tags=["reader-callback"])

@callback_router.post("/reader-callback", response_model=CallbackResult)
def reader_callback(
    payload: ReaderCallback,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    order = OrderStatusService(db, publisher=publisher).apply_payment_callback(payload)
    if order is None:
        return CallbackResult(message="Order with payment not found, callback ignored.")
    return CallbackResult(message="Payment status updated")
