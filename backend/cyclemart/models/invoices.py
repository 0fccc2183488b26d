from __future__ import annotations

from ..extensions import db
from ..line_items import LineSnapshot, LineSnapshotType
from ..money import money_str
from ..time_utils import to_utc_z

INVOICE_TYPES = ("service", "new_sale")

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_OVERDUE = "overdue"
PAYMENT_STATUS_CANCELLED = "cancelled"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_CANCELLED,
)

PAYMENT_METHODS = ("cash", "card", "upi", "bank_transfer", "cheque")


class Invoice(db.Model):
    """
    Customer invoice for a new sale (stock lines) or a service job.

    Amount columns are stored, not derived on read, but are only ever
    written together by InvoiceService:
    - tax_amount = round(subtotal * tax_rate, 2), total = subtotal + tax_amount
    - paid_amount = SUM(payment_transactions.amount)
    - remaining_amount = max(0, total - paid_amount)
    - payment_status from payment_state.derive_payment_status

    items is the line snapshot taken at creation. Stock restoration on
    delete reads it, never live inventory.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    work_order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False, default="service", index=True)
    items = db.Column(LineSnapshotType(), nullable=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 4), nullable=False)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    remaining_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    work_order = db.relationship("WorkOrder", backref=db.backref("invoices", lazy=True))
    payments = db.relationship(
        "PaymentTransaction",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="PaymentTransaction.id",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.payment_status}>"

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "work_order_id": self.work_order_id,
            "type": self.type,
            "items": [line.to_dict() for line in (self.items or LineSnapshot())],
            "subtotal": money_str(self.subtotal),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "tax_amount": money_str(self.tax_amount),
            "total": money_str(self.total),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "payment_status": self.payment_status,
            "payment_date": to_utc_z(self.payment_date),
            "due_date": to_utc_z(self.due_date),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class PaymentTransaction(db.Model):
    """
    One recorded payment against an invoice.

    Rows are deleted (not voided) when a payment entry is reversed; the
    parent invoice is recomputed in the same transaction either way.
    """
    __tablename__ = "payment_transactions"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payment_transactions_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    transaction_reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "transaction_reference": self.transaction_reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
