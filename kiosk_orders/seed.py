"""Seed a development database with a small catalog and print bearer tokens."""

from decimal import Decimal
from sqlalchemy import select

from kiosk_orders.auth_local import create_access_token
from kiosk_orders.domain.models import Activity, Kiosk, Option, Product, Reader, Room
from kiosk_orders.infrastructure.db import SessionLocal, init_models

PRODUCTS = [("Soda", "20.00"), ("Chips", "15.00"), ("Candy bar", "12.50")]
OPTIONS = [("Extra ice", "2.00"), ("Large", "5.00")]
DEV_READER_REFERENCE = "rdr_dev_0000000000"

def _get_or_create(db, model, defaults=None, **lookup):
    instance = db.scalars(select(model).filter_by(**lookup)).first()
    if instance is None:
        instance = model(**lookup, **(defaults or {}))
        db.add(instance)
        db.flush()
    return instance

def seed() -> dict:
    init_models()
    with SessionLocal() as db:
        reader = _get_or_create(db, Reader, api_reference_id=DEV_READER_REFERENCE, defaults={"reader_tag": "R1"})
        kiosk = _get_or_create(db, Kiosk, name="Lobby kiosk", defaults={"kiosk_tag": "K1", "reader_id": reader.id})
        activity = _get_or_create(db, Activity, name="Bowling")
        room = _get_or_create(db, Room, name="Lane 1")
        for name, price in PRODUCTS:
            _get_or_create(db, Product, name=name, defaults={"price": Decimal(price)})
        for name, price in OPTIONS:
            _get_or_create(db, Option, name=name, defaults={"price": Decimal(price)})
        db.commit()
        return {"kiosk_id": kiosk.id, "reader_id": reader.id, "activity_id": activity.id, "room_id": room.id}

def main():
    ids = seed()
    for key, value in ids.items():
        print(f"{key}: {value}")
    print(f"admin token: {create_access_token('admin', 'admin')}")
    print(f"kiosk token: {create_access_token(ids['kiosk_id'], 'kiosk')}")

if __name__ == "__main__":
    main()
