# Overview: Authoritative stock quantity mutations for inventory items.

"""
Inventory Ledger

Invariants:
- InventoryItem.quantity never goes below zero.
- A sale is all-or-nothing: every line is checked before any line is
  decremented, and a single shortfall rejects the whole batch.
- Decrement/restore run inside the caller's transaction. The ledger never
  commits; InvoiceService owns the transaction boundary so a failed
  invoice insert also undoes the decrement.
- Rows are read with SELECT ... FOR UPDATE (in id order, to keep lock
  acquisition order stable across concurrent sales).
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..line_items import LineSnapshot
from ..models import InventoryItem
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, session: Session):
        self.session = session

    def _load_locked(self, item_ids) -> dict[int, InventoryItem]:
        if not item_ids:
            return {}
        query = (
            self.session.query(InventoryItem)
            .filter(InventoryItem.id.in_(sorted(item_ids)))
            .order_by(InventoryItem.id)
            .populate_existing()
        )
        return {item.id: item for item in lock_for_update(query).all()}

    def check_availability(self, lines: LineSnapshot) -> dict[int, InventoryItem]:
        """
        Verify every requested line against current stock.

        Quantities for the same item on several lines are summed first.
        Raises NotFoundError for unknown items and InsufficientStockError
        listing every shortfall. Returns the locked items keyed by id.
        """
        requested = lines.quantities_by_item()
        items = self._load_locked(requested.keys())

        missing = sorted(set(requested) - set(items))
        if missing:
            raise NotFoundError(
                "Inventory item not found",
                errors=[{"inventory_item_id": item_id, "message": "not found"} for item_id in missing],
            )

        shortages = []
        for item_id, required in requested.items():
            item = items[item_id]
            if item.quantity < required:
                shortages.append({
                    "inventory_item_id": item_id,
                    "item_name": item.name,
                    "available": item.quantity,
                    "required": required,
                })

        if shortages:
            raise InsufficientStockError(shortages)

        return items

    def decrement(self, lines: LineSnapshot) -> None:
        items = self.check_availability(lines)
        for item_id, qty in lines.quantities_by_item().items():
            item = items[item_id]
            item.quantity = item.quantity - qty
            logger.info("Stock decrement item=%s sku=%s qty=%d now=%d", item.id, item.sku, qty, item.quantity)
        self.session.flush()

    def restore(self, lines: LineSnapshot) -> list[int]:
        """
        Add quantities back from a stored line snapshot.

        Items deleted since the sale are skipped. Returns the ids that were
        skipped so callers can report them.
        """
        requested = lines.quantities_by_item()
        items = self._load_locked(requested.keys())

        skipped = []
        for item_id, qty in requested.items():
            item = items.get(item_id)
            if item is None:
                logger.warning("Stock restore skipped, item %s no longer exists", item_id)
                skipped.append(item_id)
                continue
            item.quantity = item.quantity + qty
            logger.info("Stock restore item=%s sku=%s qty=%d now=%d", item.id, item.sku, qty, item.quantity)
        self.session.flush()
        return skipped

    def adjust(self, item_id: int, quantity: int) -> InventoryItem:
        """Manual stock count correction: set on-hand to an absolute value."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be an integer")
        if quantity < 0:
            raise ValidationError("quantity must be >= 0")

        item = lock_for_update(
            self.session.query(InventoryItem).filter_by(id=item_id).populate_existing()
        ).first()
        if item is None:
            raise NotFoundError("Inventory item not found")

        logger.info("Stock adjust item=%s from=%d to=%d", item.id, item.quantity, quantity)
        item.quantity = quantity
        self.session.flush()
        return item

    def low_stock(self) -> list[InventoryItem]:
        return (
            self.session.query(InventoryItem)
            .filter(InventoryItem.quantity <= InventoryItem.minimum_stock)
            .order_by(InventoryItem.quantity.asc(), InventoryItem.id.asc())
            .all()
        )

    def low_stock_count(self) -> int:
        return (
            self.session.query(InventoryItem)
            .filter(InventoryItem.quantity <= InventoryItem.minimum_stock)
            .count()
        )
