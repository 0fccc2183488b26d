from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

WORK_ORDER_STATUSES = ("pending", "in_progress", "completed", "cancelled", "on_hold")
WORK_ORDER_PRIORITIES = ("low", "normal", "high", "urgent")
ACTIVE_WORK_ORDER_STATUSES = ("pending", "in_progress")


class WorkOrder(db.Model):
    """
    Repair job for a customer's machine.

    order_number is allocated from document_sequences (WO-<year>-<seq>) and
    never changes. actual_cost is what a service invoice bills.
    """
    __tablename__ = "work_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_work_orders_order_number"),
        db.Index("ix_work_orders_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    machine_id = db.Column(db.Integer, db.ForeignKey("sewing_machines.id"), nullable=True, index=True)

    problem_description = db.Column(db.Text, nullable=False)
    diagnosis = db.Column(db.Text, nullable=True)
    repair_notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    priority = db.Column(db.String(16), nullable=False, default="normal")

    estimated_cost = db.Column(db.Numeric(10, 2), nullable=True)
    actual_cost = db.Column(db.Numeric(10, 2), nullable=True)
    labor_hours = db.Column(db.Numeric(5, 2), nullable=True)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("work_orders", lazy=True))
    machine = db.relationship("SewingMachine", backref=db.backref("work_orders", lazy=True))

    def __repr__(self) -> str:
        return f"<WorkOrder id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "machine_id": self.machine_id,
            "problem_description": self.problem_description,
            "diagnosis": self.diagnosis,
            "repair_notes": self.repair_notes,
            "status": self.status,
            "priority": self.priority,
            "estimated_cost": money_str(self.estimated_cost),
            "actual_cost": money_str(self.actual_cost),
            "labor_hours": str(self.labor_hours) if self.labor_hours is not None else None,
            "due_date": to_utc_z(self.due_date),
            "completed_at": to_utc_z(self.completed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
