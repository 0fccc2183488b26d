from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

INVENTORY_TYPES = ("machine", "repairs", "parts")


class InventoryItem(db.Model):
    """
    Stock-keeping record with an authoritative on-hand quantity.

    quantity is mutated only through InventoryLedger (sale decrement,
    delete restore, manual adjustment) so the non-negative invariant has
    a single enforcement point. version_id gives optimistic locking on top
    of the row locks taken by the ledger.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        db.CheckConstraint("minimum_stock >= 0", name="ck_inventory_items_minimum_nonneg"),
        db.Index("ix_inventory_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    type = db.Column(db.String(16), nullable=False, default="parts")

    cost = db.Column(db.Numeric(10, 2), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(128), nullable=True)
    warranty_period_years = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.minimum_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "brand": self.brand,
            "type": self.type,
            "cost": money_str(self.cost),
            "price": money_str(self.price),
            "quantity": self.quantity,
            "minimum_stock": self.minimum_stock,
            "location": self.location,
            "warranty_period_years": self.warranty_period_years,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
