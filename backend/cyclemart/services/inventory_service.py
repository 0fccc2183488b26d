# Overview: Inventory catalogue operations; stock quantity changes go through InventoryLedger.

"""
Inventory item CRUD.

Catalogue fields (name, price, location, ...) are edited directly. The
on-hand quantity is only written through InventoryLedger, either as the
initial count on create or as a manual adjustment on update, so sales and
stock corrections share the same lock-and-check path.

An item that appears in any stored invoice snapshot cannot be deleted;
deleting it would leave the invoice unable to restore stock on reversal.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import InventoryItem, Invoice
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_inventory_item, validate_payload
from .concurrency import begin_write, run_with_retry
from .inventory_ledger import InventoryLedger
from .pagination import paginate

logger = logging.getLogger(__name__)

INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category", "brand", "type",
        "cost", "price", "quantity", "minimum_stock", "location",
        "warranty_period_years",
    },
    required_on_create={"name", "category", "cost", "price"},
)


def list_items(
    *,
    search: str | None = None,
    category: str | None = None,
    item_type: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(InventoryItem)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            InventoryItem.name.ilike(like),
            InventoryItem.sku.ilike(like),
            InventoryItem.brand.ilike(like),
        ))
    if category:
        query = query.filter(InventoryItem.category == category)
    if item_type:
        query = query.filter(InventoryItem.type == item_type)
    query = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda i: i.to_dict())


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def low_stock_items() -> list[InventoryItem]:
    return InventoryLedger(db.session).low_stock()


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(InventoryItem.id).filter(InventoryItem.sku == sku)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(
            f"SKU {sku} already exists",
            errors=[{"field": "sku", "message": "duplicate"}],
        )


def create_item(payload: dict) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=False)
    enforce_rules_inventory_item(patch)

    def _op():
        begin_write(db.session)
        fields = dict(patch)
        sku = fields.pop("sku", None)
        if sku:
            _ensure_sku_free(sku)

        item = InventoryItem(sku=sku or f"TMP-{uuid.uuid4().hex}", **fields)
        db.session.add(item)
        db.session.flush()
        if not sku:
            # Generated SKUs follow the row id
            item.sku = f"SKU-{item.id:06d}"
        db.session.commit()
        return item

    item = run_with_retry(db.session, _op)
    logger.info("Inventory item created id=%s sku=%s quantity=%s", item.id, item.sku, item.quantity)
    return item


def update_item(item_id: int, payload: dict) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=True)
    enforce_rules_inventory_item(patch)

    def _op():
        begin_write(db.session)
        ledger = InventoryLedger(db.session)

        fields = dict(patch)
        quantity = fields.pop("quantity", None)
        if quantity is not None:
            item = ledger.adjust(item_id, quantity)
        else:
            item = get_item(item_id)

        if fields.get("sku") and fields["sku"] != item.sku:
            _ensure_sku_free(fields["sku"], exclude_id=item.id)

        for key, value in fields.items():
            setattr(item, key, value)
        item.updated_at = utcnow()
        db.session.commit()
        return item

    return run_with_retry(db.session, _op)


def invoices_referencing(item_id: int) -> list[str]:
    """Invoice numbers whose stored line snapshot mentions the item."""
    rows = (
        db.session.query(Invoice.invoice_number, Invoice.items)
        .filter(Invoice.type == "new_sale")
        .all()
    )
    return [
        number for number, snapshot in rows
        if snapshot and item_id in snapshot.quantities_by_item()
    ]


def delete_item(item_id: int) -> None:
    item = get_item(item_id)

    referenced_by = invoices_referencing(item.id)
    if referenced_by:
        raise ConflictError(
            f"Inventory item {item.sku} is referenced by {len(referenced_by)} invoice(s)",
            errors=[{"invoice_number": number} for number in referenced_by],
        )

    sku = item.sku
    db.session.delete(item)
    db.session.commit()
    logger.info("Inventory item %s (%s) deleted", item_id, sku)
