"""
Invoice payment state.

Status is a function of (paid, total, due_date, now):

    paid <= 0          -> pending, or overdue once now > due_date
    0 < paid < total   -> partial
    paid >= total      -> paid

"cancelled" is only ever set by an explicit update and is never derived;
recomputing a cancelled invoice keeps it cancelled.

Every mutation path (create with initial payment, payment add/delete,
status-only update) goes through apply_payment_state so remaining_amount
and payment_status cannot drift apart.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from ..models.invoices import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
)
from ..money import ZERO, quantize_money


def derive_payment_status(
    paid_amount: Decimal,
    total: Decimal,
    due_date: datetime | None,
    now: datetime,
) -> str:
    if paid_amount <= ZERO:
        # Backends that keep tz info hand back aware values
        if due_date is not None and due_date.tzinfo is not None:
            due_date = due_date.astimezone(timezone.utc).replace(tzinfo=None)
        if due_date is not None and now > due_date:
            return PAYMENT_STATUS_OVERDUE
        return PAYMENT_STATUS_PENDING
    if paid_amount < total:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PAID


def remaining_amount(paid_amount: Decimal, total: Decimal) -> Decimal:
    return max(ZERO, quantize_money(total - paid_amount))


def apply_payment_state(invoice, paid_amount: Decimal, now: datetime) -> str:
    """
    Write paid_amount, remaining_amount, payment_status and payment_date
    onto the invoice together. Returns the resulting status.
    """
    paid_amount = quantize_money(paid_amount)
    total = quantize_money(invoice.total)

    invoice.paid_amount = paid_amount
    invoice.remaining_amount = remaining_amount(paid_amount, total)

    if invoice.payment_status == PAYMENT_STATUS_CANCELLED:
        return invoice.payment_status

    status = derive_payment_status(paid_amount, total, invoice.due_date, now)
    invoice.payment_status = status
    if status == PAYMENT_STATUS_PAID:
        if invoice.payment_date is None:
            invoice.payment_date = now
    else:
        invoice.payment_date = None
    return status
