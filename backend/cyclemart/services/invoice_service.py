# Overview: Invoice lifecycle; keeps stock, invoice amounts and payments consistent.

"""
Invoice Lifecycle Engine

WHY: Stock quantities, invoice totals and payment status are three views of
the same sale. Every operation here changes them together inside a single
database transaction so a failure at any step leaves none of them changed.

TRANSACTION SHAPE (all public write methods):
    begin_write -> lock rows -> validate -> mutate -> flush -> commit
    any exception -> rollback (run_with_retry) -> re-raise

RULES:
- new_sale: subtotal is computed from the line snapshot; stock is checked
  for every line and decremented only if all lines fit.
- service: subtotal comes from the caller (usually a work order's
  actual_cost); no inventory interaction.
- tax_amount = round(subtotal * tax_rate, 2); total = subtotal + tax_amount.
- paid_amount is always the sum of the invoice's payment transactions.
- Inventory effects happen at create and delete only. Line items and type
  are fixed after creation so the snapshot used for restoration is the
  one that was actually decremented.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..line_items import LineSnapshot
from ..models import Customer, Invoice, PaymentTransaction, WorkOrder
from ..models.invoices import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
)
from ..money import MAX_AMOUNT, ZERO, quantize_money, to_decimal
from ..time_utils import days_from, utcnow
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_invoice,
    enforce_rules_payment,
    validate_payload,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import DOCUMENT_INVOICE, next_document_number
from .inventory_ledger import InventoryLedger
from .payment_state import apply_payment_state

logger = logging.getLogger(__name__)

TYPE_SERVICE = "service"
TYPE_NEW_SALE = "new_sale"

INVOICE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "work_order_id",
        "type",
        "subtotal",
        "tax_rate",
        "due_date",
        "notes",
    },
    required_on_create={"customer_id", "type", "due_date"},
    # Client-computed values are accepted for compatibility but recomputed
    extra_fields={"items", "initial_payment", "tax_amount", "total", "invoice_number"},
)

INVOICE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "work_order_id",
        "subtotal",
        "tax_rate",
        "payment_status",
        "payment_date",
        "due_date",
        "notes",
    },
    extra_fields={"payment_method"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "payment_method", "transaction_reference", "notes"},
    required_on_create={"amount", "payment_method"},
)


@dataclass(frozen=True)
class InvoiceSettings:
    default_tax_rate: Decimal = Decimal("0.18")
    service_tax_rate: Decimal = Decimal("0.08")
    due_days: int = 30

    @classmethod
    def from_config(cls, config) -> "InvoiceSettings":
        return cls(
            default_tax_rate=to_decimal(config.get("DEFAULT_TAX_RATE", "0.18"), field="DEFAULT_TAX_RATE"),
            service_tax_rate=to_decimal(config.get("SERVICE_TAX_RATE", "0.08"), field="SERVICE_TAX_RATE"),
            due_days=int(config.get("INVOICE_DUE_DAYS", 30)),
        )


def compute_amounts(subtotal: Decimal, tax_rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Return (subtotal, tax_amount, total), each rounded to cents."""
    subtotal = quantize_money(subtotal)
    tax_amount = quantize_money(subtotal * tax_rate)
    total = subtotal + tax_amount
    if total > MAX_AMOUNT:
        raise ValidationError(
            f"Invoice total {total} exceeds the maximum of {MAX_AMOUNT}",
            errors=[{"field": "total", "message": "exceeds maximum amount"}],
        )
    return subtotal, tax_amount, total


class InvoiceService:
    def __init__(
        self,
        session: Session,
        ledger: InventoryLedger | None = None,
        settings: InvoiceSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.ledger = ledger or InventoryLedger(session)
        self.settings = settings or InvoiceSettings()
        self.clock = clock

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, invoice_id: int) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    def list(
        self,
        *,
        customer_id: int | None = None,
        payment_status: str | None = None,
        invoice_type: str | None = None,
    ) -> list[Invoice]:
        query = self.session.query(Invoice)
        if customer_id is not None:
            query = query.filter(Invoice.customer_id == customer_id)
        if payment_status:
            query = query.filter(Invoice.payment_status == payment_status)
        if invoice_type:
            query = query.filter(Invoice.type == invoice_type)
        return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()

    def payments_for(self, invoice_id: int) -> list[PaymentTransaction]:
        self.get(invoice_id)
        return (
            self.session.query(PaymentTransaction)
            .filter_by(invoice_id=invoice_id)
            .order_by(PaymentTransaction.id)
            .all()
        )

    # =========================================================================
    # CREATE
    # =========================================================================

    def create(self, payload: dict) -> Invoice:
        patch = validate_payload(
            model=Invoice,
            payload=payload,
            policy=INVOICE_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_invoice(patch)

        def _op():
            begin_write(self.session)
            invoice = self._create_locked(patch)
            self.session.commit()
            return invoice

        invoice = run_with_retry(self.session, _op)
        logger.info(
            "Invoice created number=%s type=%s total=%s status=%s",
            invoice.invoice_number, invoice.type, invoice.total, invoice.payment_status,
        )
        return invoice

    def _create_locked(self, patch: dict) -> Invoice:
        now = self.clock()

        if self.session.get(Customer, patch["customer_id"]) is None:
            raise NotFoundError("Customer not found")

        invoice_type = patch["type"]
        tax_rate = patch.get("tax_rate")
        if tax_rate is None:
            tax_rate = self.settings.default_tax_rate

        if invoice_type == TYPE_NEW_SALE:
            if patch.get("work_order_id") is not None:
                raise ValidationError("work_order_id is only allowed on service invoices")
            snapshot = self._parse_lines(patch.get("items"))
            if not snapshot:
                raise ValidationError("A new_sale invoice needs at least one item")

            items = self.ledger.check_availability(snapshot)
            snapshot = snapshot.with_names({item_id: item.name for item_id, item in items.items()})
            self.ledger.decrement(snapshot)
            subtotal = snapshot.subtotal
        else:
            if patch.get("items"):
                raise ValidationError("Line items are only allowed on new_sale invoices")
            snapshot = LineSnapshot()
            if patch.get("subtotal") is None:
                raise ValidationError(
                    "subtotal is required for service invoices",
                    errors=[{"field": "subtotal", "message": "required"}],
                )
            subtotal = patch["subtotal"]
            work_order_id = patch.get("work_order_id")
            if work_order_id is not None and self.session.get(WorkOrder, work_order_id) is None:
                raise NotFoundError("Work order not found")

        subtotal, tax_amount, total = compute_amounts(subtotal, tax_rate)

        invoice = Invoice(
            invoice_number=next_document_number(self.session, document_type=DOCUMENT_INVOICE, year=now.year),
            customer_id=patch["customer_id"],
            work_order_id=patch.get("work_order_id"),
            type=invoice_type,
            items=snapshot,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total=total,
            paid_amount=ZERO,
            remaining_amount=total,
            payment_status=PAYMENT_STATUS_PENDING,
            due_date=patch["due_date"],
            notes=patch.get("notes"),
            created_at=now,
            updated_at=now,
        )
        self.session.add(invoice)
        self.session.flush()

        initial_payment = patch.get("initial_payment")
        if initial_payment:
            self._add_payment_locked(invoice, self._validate_payment(initial_payment), now)
        else:
            apply_payment_state(invoice, ZERO, now)

        self.session.flush()
        return invoice

    @staticmethod
    def _parse_lines(raw) -> LineSnapshot:
        try:
            return LineSnapshot.from_json(raw)
        except ValueError as exc:
            raise ValidationError(f"Invalid items: {exc}", errors=[{"field": "items", "message": str(exc)}])

    # =========================================================================
    # CREATE FROM WORK ORDER
    # =========================================================================

    def create_from_work_order(self, work_order_id: int) -> Invoice:
        def _op():
            begin_write(self.session)
            now = self.clock()

            work_order = self.session.get(WorkOrder, work_order_id)
            if work_order is None:
                raise NotFoundError("Work order not found")
            if work_order.status != "completed":
                raise InvalidStateError("Work order must be completed to generate invoice")
            if work_order.actual_cost is None:
                raise InvalidStateError("Work order has no actual cost to invoice")

            already = self.session.query(Invoice.id).filter_by(work_order_id=work_order.id).first()
            if already is not None:
                raise ConflictError(f"Work order {work_order.order_number} is already invoiced")

            invoice = self._create_locked({
                "customer_id": work_order.customer_id,
                "work_order_id": work_order.id,
                "type": TYPE_SERVICE,
                "subtotal": quantize_money(work_order.actual_cost),
                "tax_rate": self.settings.service_tax_rate,
                "due_date": days_from(now, self.settings.due_days),
                "notes": f"Service invoice for work order {work_order.order_number}",
            })
            self.session.commit()
            return invoice

        invoice = run_with_retry(self.session, _op)
        logger.info("Invoice %s generated from work order %s", invoice.invoice_number, work_order_id)
        return invoice

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update(self, invoice_id: int, payload: dict) -> Invoice:
        if isinstance(payload, dict):
            immutable = sorted({"type", "items", "invoice_number"} & set(payload))
            if immutable:
                raise ValidationError(
                    f"Cannot change {', '.join(immutable)} after creation",
                    errors=[{"field": f, "message": "immutable"} for f in immutable],
                )

        patch = validate_payload(
            model=Invoice,
            payload=payload,
            policy=INVOICE_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_invoice(patch)

        def _op():
            begin_write(self.session)
            now = self.clock()
            invoice = self._get_locked(invoice_id)

            if "customer_id" in patch and self.session.get(Customer, patch["customer_id"]) is None:
                raise NotFoundError("Customer not found")
            if patch.get("work_order_id") is not None:
                if invoice.type != TYPE_SERVICE:
                    raise ValidationError("work_order_id is only allowed on service invoices")
                if self.session.get(WorkOrder, patch["work_order_id"]) is None:
                    raise NotFoundError("Work order not found")

            for field in ("customer_id", "work_order_id", "due_date", "notes"):
                if field in patch:
                    setattr(invoice, field, patch[field])

            if "subtotal" in patch or "tax_rate" in patch:
                if "subtotal" in patch and invoice.type == TYPE_NEW_SALE:
                    raise InvalidStateError("Subtotal of a new_sale invoice is derived from its items")
                subtotal = patch.get("subtotal", invoice.subtotal)
                tax_rate = patch.get("tax_rate", invoice.tax_rate)
                if tax_rate is None:
                    raise ValidationError("tax_rate cannot be null")
                invoice.subtotal, invoice.tax_amount, invoice.total = compute_amounts(subtotal, tax_rate)
                invoice.tax_rate = tax_rate

            requested = patch.get("payment_status")
            if requested == PAYMENT_STATUS_CANCELLED:
                invoice.payment_status = PAYMENT_STATUS_CANCELLED
            elif requested is not None and invoice.payment_status == PAYMENT_STATUS_CANCELLED:
                # Leaving cancelled: fall back to the derived status
                invoice.payment_status = PAYMENT_STATUS_PENDING

            paid = self._paid_total(invoice)
            if requested == PAYMENT_STATUS_PAID and paid < quantize_money(invoice.total):
                # Marking paid settles the balance with a recorded payment
                self._settle_balance(invoice, paid, patch, now)
            else:
                apply_payment_state(invoice, paid, now)

            if patch.get("payment_date") is not None and invoice.payment_status == PAYMENT_STATUS_PAID:
                invoice.payment_date = patch["payment_date"]

            invoice.updated_at = now
            self.session.commit()
            return invoice

        invoice = run_with_retry(self.session, _op)
        logger.info("Invoice %s updated status=%s", invoice.invoice_number, invoice.payment_status)
        return invoice

    def _settle_balance(self, invoice: Invoice, paid: Decimal, patch: dict, now: datetime) -> None:
        method = patch.get("payment_method") or "cash"
        payment = self._validate_payment({
            "amount": str(quantize_money(invoice.total) - paid),
            "payment_method": method,
            "notes": "Balance settled on status change",
        })
        self._add_payment_locked(invoice, payment, patch.get("payment_date") or now)

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete(self, invoice_id: int) -> None:
        """
        Delete an invoice, restoring stock for new_sale lines first.

        Restoration reads the invoice's own snapshot. Items removed from
        inventory since the sale are skipped; any other failure aborts the
        whole deletion.
        """
        def _op():
            begin_write(self.session)
            invoice = self._get_locked(invoice_id)
            number = invoice.invoice_number

            if invoice.type == TYPE_NEW_SALE and invoice.items:
                skipped = self.ledger.restore(invoice.items)
                if skipped:
                    logger.warning("Invoice %s: items %s not restored (deleted)", number, skipped)

            # payments go with the invoice (cascade="all, delete-orphan")
            self.session.delete(invoice)
            self.session.commit()
            return number

        number = run_with_retry(self.session, _op)
        logger.info("Invoice %s deleted", number)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def add_payment(self, invoice_id: int, payload: dict) -> PaymentTransaction:
        payment_patch = self._validate_payment(payload)

        def _op():
            begin_write(self.session)
            invoice = self._get_locked(invoice_id)
            txn = self._add_payment_locked(invoice, payment_patch, self.clock())
            invoice.updated_at = self.clock()
            self.session.commit()
            return txn

        txn = run_with_retry(self.session, _op)
        logger.info("Payment %s recorded on invoice %s amount=%s", txn.id, invoice_id, txn.amount)
        return txn

    def delete_payment(self, payment_id: int) -> Invoice:
        def _op():
            begin_write(self.session)
            payment = self.session.get(PaymentTransaction, payment_id)
            if payment is None:
                raise NotFoundError("Payment not found")
            invoice = self._get_locked(payment.invoice_id)

            invoice.payments.remove(payment)
            self.session.flush()

            now = self.clock()
            apply_payment_state(invoice, self._paid_total(invoice), now)
            invoice.updated_at = now
            self.session.commit()
            return invoice

        invoice = run_with_retry(self.session, _op)
        logger.info("Payment %s removed from invoice %s", payment_id, invoice.invoice_number)
        return invoice

    def _validate_payment(self, payload) -> dict:
        if not isinstance(payload, dict):
            raise ValidationError("Payment must be an object")
        patch = validate_payload(
            model=PaymentTransaction,
            payload=payload,
            policy=PAYMENT_POLICY,
            partial=False,
        )
        enforce_rules_payment(patch)
        return patch

    def _add_payment_locked(self, invoice: Invoice, patch: dict, now: datetime) -> PaymentTransaction:
        if invoice.payment_status == PAYMENT_STATUS_CANCELLED:
            raise InvalidStateError("Cannot add payment to a cancelled invoice")

        paid = self._paid_total(invoice)
        remaining = quantize_money(invoice.total) - paid
        if remaining <= ZERO:
            raise InvalidStateError("Invoice has no remaining balance due")
        if patch["amount"] > remaining:
            raise ValidationError(
                f"Payment amount {patch['amount']} exceeds remaining balance {remaining}",
                errors=[{"field": "amount", "message": "exceeds remaining balance"}],
            )

        txn = PaymentTransaction(
            amount=patch["amount"],
            payment_method=patch["payment_method"],
            transaction_reference=patch.get("transaction_reference"),
            notes=patch.get("notes"),
            created_at=now,
        )
        invoice.payments.append(txn)
        self.session.flush()

        apply_payment_state(invoice, paid + patch["amount"], now)
        return txn

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def refresh_overdue(self) -> int:
        """Flip unpaid invoices past their due date to overdue. Returns count."""
        def _op():
            begin_write(self.session)
            now = self.clock()
            candidates = lock_for_update(
                self.session.query(Invoice).filter(
                    Invoice.payment_status == PAYMENT_STATUS_PENDING,
                    Invoice.due_date < now,
                )
            ).all()
            for invoice in candidates:
                apply_payment_state(invoice, self._paid_total(invoice), now)
            changed = sum(1 for inv in candidates if inv.payment_status == PAYMENT_STATUS_OVERDUE)
            self.session.commit()
            return changed

        return run_with_retry(self.session, _op)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _get_locked(self, invoice_id: int) -> Invoice:
        invoice = lock_for_update(
            self.session.query(Invoice).filter_by(id=invoice_id).populate_existing()
        ).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    def _paid_total(self, invoice: Invoice) -> Decimal:
        self.session.flush()
        total = (
            self.session.query(func.coalesce(func.sum(PaymentTransaction.amount), 0))
            .filter(PaymentTransaction.invoice_id == invoice.id)
            .scalar()
        )
        return quantize_money(Decimal(str(total or 0)))
