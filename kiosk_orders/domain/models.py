from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Integer, UniqueConstraint
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

class Base(DeclarativeBase):
    pass

def new_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    # Stored naive, always UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    REFUNDED = "refunded"

class CheckoutMethod(str, Enum):
    SUMUP = "sumUp"
    LATER = "later"
    MANUAL = "manual"
    MOBILE_PAY = "mobilePay"

ORDER_STATUSES = {s.value for s in OrderStatus}
PAYMENT_STATUSES = {s.value for s in PaymentStatus}
CHECKOUT_METHODS = {m.value for m in CheckoutMethod}

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

# Catalog collaborators. Read-only from the order subsystem's point of view.

class Reader(TimestampMixin, Base):
    __tablename__ = "readers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # Reference assigned by the payment gateway when the reader was paired
    api_reference_id: Mapped[str] = mapped_column(String(100), unique=True)
    reader_tag: Mapped[Optional[str]] = mapped_column(String(5), unique=True, nullable=True)

class Kiosk(TimestampMixin, Base):
    __tablename__ = "kiosks"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50))
    kiosk_tag: Mapped[Optional[str]] = mapped_column(String(5), unique=True, nullable=True)
    # A reader is assigned to at most one kiosk
    reader_id: Mapped[Optional[str]] = mapped_column(String(36), unique=True, nullable=True)

class Activity(TimestampMixin, Base):
    __tablename__ = "activities"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50), unique=True)

class Room(TimestampMixin, Base):
    __tablename__ = "rooms"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50))
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

class Product(TimestampMixin, Base):
    __tablename__ = "products"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))

class Option(TimestampMixin, Base):
    __tablename__ = "options"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))

# Orders

class Order(TimestampMixin, Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # Store catalog references as plain ids (checked by the application, no FK)
    activity_id: Mapped[str] = mapped_column(String(36), index=True)
    room_id: Mapped[str] = mapped_column(String(36))
    kiosk_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, index=True)
    checkout_method: Mapped[str] = mapped_column(String(20))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    # Payment lives inline with its order: exactly one per order, same lifetime
    payment_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    client_transaction_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    products: Mapped[list["OrderProduct"]] = relationship(
        "OrderProduct", back_populates="order", cascade="all, delete-orphan", order_by="OrderProduct.position"
    )
    options: Mapped[list["OrderOption"]] = relationship(
        "OrderOption", back_populates="order", cascade="all, delete-orphan", order_by="OrderOption.position"
    )

    @validates("status")
    def _validate_status(self, key, value):
        if value not in ORDER_STATUSES:
            raise ValueError(f"Invalid order status: {value}")
        return value

    @validates("payment_status")
    def _validate_payment_status(self, key, value):
        if value is not None and value not in PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status: {value}")
        return value

    @validates("checkout_method")
    def _validate_checkout_method(self, key, value):
        if value not in CHECKOUT_METHODS:
            raise ValueError(f"Invalid checkout method: {value}")
        return value

def _positive_quantity(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Quantity must be a positive integer: {value}")
    return value

class OrderProduct(Base):
    __tablename__ = "order_products"
    __table_args__ = (UniqueConstraint("order_id", "product_id", name="uq_order_products_order_product"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"))
    product_id: Mapped[str] = mapped_column(String(36))
    quantity: Mapped[int]
    position: Mapped[int] = mapped_column(default=0)
    order: Mapped[Order] = relationship("Order", back_populates="products")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return _positive_quantity(value)

class OrderOption(Base):
    __tablename__ = "order_options"
    __table_args__ = (UniqueConstraint("order_id", "option_id", name="uq_order_options_order_option"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"))
    option_id: Mapped[str] = mapped_column(String(36))
    quantity: Mapped[int]
    position: Mapped[int] = mapped_column(default=0)
    order: Mapped[Order] = relationship("Order", back_populates="options")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return _positive_quantity(value)
