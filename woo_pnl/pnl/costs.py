"""
Unit cost resolution against an inventory snapshot.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from ..db.models import InventoryRecord, LineItem
from .money import to_number

logger = logging.getLogger(__name__)


def inventory_key(product_id: int, variation_id: Optional[int] = None) -> str:
    """Id-pair key: "<product>_<variation>" for variations, "<product>" otherwise."""
    if variation_id:
        return f"{product_id}_{variation_id}"
    return f"{product_id}"


@dataclass
class InventoryIndex:
    """Inventory records keyed by SKU and by product/variation id pair."""

    by_sku: Dict[str, InventoryRecord] = field(default_factory=dict)
    by_id: Dict[str, InventoryRecord] = field(default_factory=dict)

    @classmethod
    def build(cls, inventory: Iterable[InventoryRecord]) -> "InventoryIndex":
        """Later records win when a SKU or id pair repeats."""
        index = cls()
        for record in inventory:
            if record.sku:
                index.by_sku[record.sku] = record
            index.by_id[inventory_key(record.product_id, record.variation_id)] = record
        return index

    def __len__(self) -> int:
        return len(self.by_id)


def effective_cost(record: InventoryRecord) -> float:
    """Supplier price when positive, otherwise the record's cost price."""
    supplier_price = to_number(record.supplier_price, "supplier_price")
    if supplier_price > 0:
        return supplier_price
    return to_number(record.cost_price, "cost_price")


def _is_priced(record: Optional[InventoryRecord]) -> bool:
    if record is None:
        return False
    return (
        to_number(record.supplier_price, "supplier_price") > 0
        or to_number(record.cost_price, "cost_price") > 0
    )


def resolve_cost(item: LineItem, index: InventoryIndex) -> float:
    """
    Resolve the unit cost of a sold line item.

    Priority:
    1. Inventory record with the same SKU
    2. Inventory record with the same product/variation id pair
    3. The cost embedded in the line item when the order was processed

    A record only counts as a match when it carries a positive cost or
    supplier price. Within a match, a positive supplier price overrides the
    cost price. With nothing to go on the cost is 0.
    """
    if item.sku:
        record = index.by_sku.get(item.sku)
        if _is_priced(record):
            return effective_cost(record)

    record = index.by_id.get(inventory_key(item.product_id, item.variation_id))
    if _is_priced(record):
        return effective_cost(record)

    embedded = to_number(item.cost_price, "line item cost_price")
    return embedded if embedded > 0 else 0.0
