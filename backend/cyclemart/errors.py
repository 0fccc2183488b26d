"""
Domain error taxonomy and the Flask handlers that translate it to JSON.

Every error response has the shape {"message": str, "errors": [...]?}.
Services raise these; routes never catch them individually.
"""

from __future__ import annotations

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db


class DomainError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 400

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(DomainError):
    """400-level input problem."""


class InsufficientStockError(DomainError):
    """One or more sale lines exceed on-hand quantity."""

    def __init__(self, shortages: list[dict]):
        names = ", ".join(
            f"{s['item_name']} (available {s['available']}, required {s['required']})"
            for s in shortages
        )
        super().__init__(f"Insufficient stock for {names}", errors=shortages)
        self.shortages = shortages


class NotFoundError(DomainError):
    status_code = 404


class InvalidStateError(DomainError):
    """Operation is not allowed for the record's current state."""


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    status_code = 409


class InternalError(DomainError):
    status_code = 500


# Unique constraint name -> message shown to the client
_CONSTRAINT_MESSAGES = {
    "uq_inventory_items_sku": "An inventory item with this SKU already exists",
    "uq_invoices_invoice_number": "Invoice number already exists",
    "uq_work_orders_order_number": "Work order number already exists",
    "uq_customers_phone": "A customer with this phone number already exists",
    "inventory_items.sku": "An inventory item with this SKU already exists",
    "invoices.invoice_number": "Invoice number already exists",
    "work_orders.order_number": "Work order number already exists",
    "customers.phone": "A customer with this phone number already exists",
}


def conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    raw = str(getattr(exc, "orig", exc))
    for needle, message in _CONSTRAINT_MESSAGES.items():
        if needle in raw:
            return ConflictError(message)
    return ConflictError("Record conflicts with existing data")


def register_error_handlers(app) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        db.session.rollback()
        if exc.status_code >= 500:
            current_app.logger.error("Internal error: %s", exc.message)
        else:
            current_app.logger.info("%s: %s", type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        conflict = conflict_from_integrity_error(exc)
        current_app.logger.info("Integrity conflict: %s", exc.orig)
        return jsonify(conflict.to_dict()), conflict.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify({"message": exc.description}), exc.code
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify({"message": "Internal server error"}), 500
