"""
Invoice line snapshot.

A new_sale invoice stores its lines as a point-in-time copy rather than a
join against inventory_items. The snapshot is what inventory restoration
reads on delete, so it must survive later edits or removal of the items.

Stored shape (JSON):
    {"version": 1, "lines": [{"inventory_item_id": 3, "name": "Bell",
                              "quantity": 2, "price": "150.00"}, ...]}

Legacy rows holding a bare list of lines are read as version 1.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from sqlalchemy.types import JSON, TypeDecorator

from .money import MAX_AMOUNT, ZERO, money_str, quantize_money, to_decimal

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class InvoiceLine:
    inventory_item_id: int
    name: str
    quantity: int
    price: Decimal

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.price * self.quantity)

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": money_str(self.price),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "InvoiceLine":
        """Parse one line; raises ValueError on malformed input."""
        if not isinstance(raw, dict):
            raise ValueError("each item must be an object")

        item_id = raw.get("inventory_item_id")
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            if isinstance(item_id, str) and item_id.strip().isdigit():
                item_id = int(item_id.strip())
            else:
                raise ValueError("inventory_item_id must be an integer")

        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError("quantity must be an integer")
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        try:
            price = quantize_money(to_decimal(raw.get("price"), field="price"))
        except InvalidOperation:
            raise ValueError("price is out of range")
        if price < ZERO:
            raise ValueError("price must be >= 0")
        if price > MAX_AMOUNT:
            raise ValueError(f"price cannot exceed {MAX_AMOUNT}")

        name = raw.get("name") or ""
        return cls(
            inventory_item_id=item_id,
            name=str(name).strip(),
            quantity=quantity,
            price=price,
        )


@dataclass(frozen=True)
class LineSnapshot:
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    version: int = SNAPSHOT_VERSION

    def __bool__(self) -> bool:
        return bool(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(sum((line.line_total for line in self.lines), ZERO))

    def quantities_by_item(self) -> dict[int, int]:
        totals: dict[int, int] = {}
        for line in self.lines:
            totals[line.inventory_item_id] = totals.get(line.inventory_item_id, 0) + line.quantity
        return totals

    def with_names(self, names: dict[int, str]) -> "LineSnapshot":
        """Fill blank line names from the current inventory names."""
        return LineSnapshot(
            lines=tuple(
                line if line.name else InvoiceLine(
                    inventory_item_id=line.inventory_item_id,
                    name=names.get(line.inventory_item_id, ""),
                    quantity=line.quantity,
                    price=line.price,
                )
                for line in self.lines
            ),
            version=self.version,
        )

    def to_json(self) -> dict:
        return {"version": self.version, "lines": [line.to_dict() for line in self.lines]}

    @classmethod
    def from_json(cls, data) -> "LineSnapshot":
        if data is None:
            return cls()
        if isinstance(data, str):
            # Older clients post the lines JSON-encoded
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                raise ValueError("items must be valid JSON")
        if isinstance(data, list):
            raw_lines, version = data, SNAPSHOT_VERSION
        elif isinstance(data, dict):
            raw_lines = data.get("lines") or []
            version = data.get("version", SNAPSHOT_VERSION)
        else:
            raise ValueError("items must be a list of lines")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported items snapshot version {version}")
        if not isinstance(raw_lines, list):
            raise ValueError("items must be a list of lines")
        return cls(lines=tuple(InvoiceLine.from_dict(raw) for raw in raw_lines), version=version)


class LineSnapshotType(TypeDecorator):
    """Persist a LineSnapshot as JSON, load it back as a LineSnapshot."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, LineSnapshot):
            return value.to_json()
        return LineSnapshot.from_json(value).to_json()

    def process_result_value(self, value, dialect):
        if value is None:
            return LineSnapshot()
        return LineSnapshot.from_json(value)
