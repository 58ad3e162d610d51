"""
Cart normalisation and pricing.

A submitted cart is a list of ``{"id": <catalog id>, "quantity": <int>}``
entries. Duplicates are legal input: ``combine`` folds them together and
``remove_zero`` drops the entries that do not order anything. Pricing looks
every entry up in the catalog and skips the ones that no longer exist.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Protocol
import math
import uuid

# Largest quantity a single cart line can hold (32-bit signed column)
MAX_QUANTITY = 2 ** 31 - 1


@dataclass
class OrderItem:
    item_id: str
    quantity: int


class PriceLookup(Protocol):
    def find_product_price(self, product_id: str) -> Optional[Decimal]: ...

    def find_option_price(self, option_id: str) -> Optional[Decimal]: ...


def is_valid_id(value: Any) -> bool:
    """True when ``value`` is a string that parses as a UUID reference."""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def is_order_item_list(value: Any) -> bool:
    """
    Check the shape of a submitted item list.

    Accepts empty lists, duplicate ids and zero quantities. Rejects anything
    that is not a list of mappings with a string id and a non-negative whole
    quantity up to MAX_QUANTITY (negative, fractional, infinite, oversized
    or missing quantities fail).
    """
    if not isinstance(value, list):
        return False
    for entry in value:
        if not isinstance(entry, dict):
            return False
        item_id = entry.get("id", entry.get("itemId"))
        if not isinstance(item_id, str) or not item_id:
            return False
        quantity = entry.get("quantity")
        if not _is_whole_number(quantity) or not 0 <= quantity <= MAX_QUANTITY:
            return False
    return True


def parse_items(value: Optional[list]) -> List[OrderItem]:
    """Convert a list already accepted by ``is_order_item_list``."""
    return [
        OrderItem(item_id=entry.get("id", entry.get("itemId")), quantity=int(entry["quantity"]))
        for entry in value or []
    ]


def combine(items: Iterable[OrderItem]) -> List[OrderItem]:
    """Merge entries sharing an id by summing quantities, keeping first-seen order."""
    combined = {}
    for item in items:
        if item.item_id in combined:
            combined[item.item_id].quantity += item.quantity
        else:
            combined[item.item_id] = OrderItem(item.item_id, item.quantity)
    return list(combined.values())


def remove_zero(items: Iterable[OrderItem]) -> List[OrderItem]:
    return [item for item in items if item.quantity > 0]


def _billable_quantity(quantity) -> int:
    return max(math.floor(quantity), 0)


def compute_subtotal(products: Iterable[OrderItem], options: Iterable[OrderItem], catalog: PriceLookup) -> Decimal:
    """
    Sum price * quantity over both lists.

    Products are priced against the product catalog and options against the
    option catalog. Items whose catalog entry is gone contribute nothing;
    only failures of the lookup itself propagate.
    """
    subtotal = Decimal("0")
    for item in products:
        price = catalog.find_product_price(item.item_id)
        if price is not None:
            subtotal += Decimal(str(price)) * _billable_quantity(item.quantity)
    for item in options:
        price = catalog.find_option_price(item.item_id)
        if price is not None:
            subtotal += Decimal(str(price)) * _billable_quantity(item.quantity)
    return subtotal
