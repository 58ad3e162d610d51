from sqlalchemy import select
from sqlalchemy.orm import Session
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, List

from kiosk_orders.domain.models import Activity, Kiosk, Option, Order, Product, Reader, Room
from kiosk_orders.application.errors import ReferenceNotFoundError


class CatalogRepository:
    """Price lookups for products and options."""

    def __init__(self, db: Session):
        self.db = db

    def find_product_price(self, product_id: str) -> Optional[Decimal]:
        product = self.db.get(Product, product_id)
        return product.price if product else None

    def find_option_price(self, option_id: str) -> Optional[Decimal]:
        option = self.db.get(Option, option_id)
        return option.price if option else None


class KioskRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, kiosk_id: str) -> Optional[Kiosk]:
        return self.db.get(Kiosk, kiosk_id)


class ReaderRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, reader_id: str) -> Optional[Reader]:
        return self.db.get(Reader, reader_id)


class OrderRepository:
    """Order persistence with application-level reference checks."""

    def __init__(self, db: Session):
        self.db = db

    def _missing(self, model, ids: Sequence[str]) -> List[str]:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return []
        found = set(self.db.scalars(select(model.id).where(model.id.in_(ids))))
        return [i for i in ids if i not in found]

    def validate_references(self, order: Order) -> None:
        """Raise ReferenceNotFoundError if anything the order points at is gone."""
        if self.db.get(Activity, order.activity_id) is None:
            raise ReferenceNotFoundError("Activity does not exist")
        if self.db.get(Room, order.room_id) is None:
            raise ReferenceNotFoundError("Room does not exist")
        if order.kiosk_id is not None and self.db.get(Kiosk, order.kiosk_id) is None:
            raise ReferenceNotFoundError("Kiosk does not exist")
        missing_products = self._missing(Product, [p.product_id for p in order.products])
        if missing_products:
            raise ReferenceNotFoundError(f"Product does not exist: {', '.join(missing_products)}")
        missing_options = self._missing(Option, [o.option_id for o in order.options])
        if missing_options:
            raise ReferenceNotFoundError(f"Option does not exist: {', '.join(missing_options)}")

    def add(self, order: Order) -> Order:
        self.validate_references(order)
        self.db.add(order)
        self.db.flush()
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def get_many(self, order_ids: Sequence[str]) -> List[Order]:
        stmt = select(Order).where(Order.id.in_(list(order_ids))).order_by(Order.created_at, Order.id)
        return list(self.db.scalars(stmt))

    def find_by_client_transaction_id(self, client_transaction_id: str) -> Optional[Order]:
        stmt = select(Order).where(Order.client_transaction_id == client_transaction_id)
        return self.db.scalars(stmt).first()

    def list(
        self,
        statuses: Optional[Sequence[str]] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[Order]:
        stmt = select(Order)
        if statuses:
            stmt = stmt.where(Order.status.in_(list(statuses)))
        if from_date is not None:
            stmt = stmt.where(Order.created_at >= from_date)
        if to_date is not None:
            stmt = stmt.where(Order.created_at <= to_date)
        return list(self.db.scalars(stmt.order_by(Order.created_at, Order.id)))
