# Overview: Flask API routes for invoices and their payments.

"""
Invoice API Routes

All stock and payment consistency rules live in InvoiceService; these
handlers only parse input and serialize results. Domain errors propagate
to the app-level handlers in errors.py.

POST /api/invoices body (new sale):
{
    "customer_id": 1,
    "type": "new_sale",
    "items": [{"inventory_item_id": 3, "quantity": 2, "price": "450.00"}],
    "tax_rate": "0.18",                       (optional, defaults from config)
    "due_date": "2026-11-30",
    "initial_payment": {"amount": "500.00", "payment_method": "cash"}   (optional)
}

POST /api/invoices body (service):
{
    "customer_id": 1,
    "type": "service",
    "work_order_id": 7,                      (optional)
    "subtotal": "1200.00",
    "due_date": "2026-11-30"
}
"""

from flask import Blueprint, current_app, request

from ..extensions import db
from ..services.inventory_ledger import InventoryLedger
from ..services.invoice_service import InvoiceService, InvoiceSettings

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def invoice_service() -> InvoiceService:
    """Engine bound to the request-scoped session and current app config."""
    return InvoiceService(
        db.session,
        InventoryLedger(db.session),
        InvoiceSettings.from_config(current_app.config),
    )


# =============================================================================
# INVOICES
# =============================================================================

@invoices_bp.get("")
def list_invoices_route():
    """
    Query params: customer_id, payment_status, type.
    """
    invoices = invoice_service().list(
        customer_id=request.args.get("customer_id", type=int),
        payment_status=request.args.get("payment_status"),
        invoice_type=request.args.get("type"),
    )
    return {"items": [inv.to_dict() for inv in invoices], "count": len(invoices)}, 200


@invoices_bp.post("")
def create_invoice_route():
    invoice = invoice_service().create(request.get_json(silent=True))
    return {"invoice": invoice.to_dict(include_payments=True)}, 201


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    invoice = invoice_service().get(invoice_id)
    return {"invoice": invoice.to_dict(include_payments=True)}, 200


@invoices_bp.route("/<int:invoice_id>", methods=["PUT", "PATCH"])
def update_invoice_route(invoice_id: int):
    """
    Patch invoice fields. Line items and type cannot change; setting
    payment_status to "paid" records a settling payment for the balance.
    """
    invoice = invoice_service().update(invoice_id, request.get_json(silent=True))
    return {"invoice": invoice.to_dict(include_payments=True)}, 200


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    invoice_service().delete(invoice_id)
    return "", 204


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.get("/<int:invoice_id>/payments")
def list_invoice_payments_route(invoice_id: int):
    payments = invoice_service().payments_for(invoice_id)
    return {"items": [p.to_dict() for p in payments], "count": len(payments)}, 200


@invoices_bp.post("/<int:invoice_id>/payments")
def add_invoice_payment_route(invoice_id: int):
    """
    Request body:
    {
        "amount": "250.00",
        "payment_method": "upi",
        "transaction_reference": "UPI-8842",   (optional)
        "notes": "..."                          (optional)
    }

    Returns the payment and the recomputed invoice.
    """
    service = invoice_service()
    payment = service.add_payment(invoice_id, request.get_json(silent=True))
    invoice = service.get(invoice_id)
    return {"payment": payment.to_dict(), "invoice": invoice.to_dict()}, 201
