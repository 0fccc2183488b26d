# Overview: Flask API route for reversing a recorded payment.

from flask import Blueprint

from .invoices import invoice_service

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.delete("/<int:payment_id>")
def delete_payment_route(payment_id: int):
    """Remove a payment entry; the parent invoice is recomputed and returned."""
    invoice = invoice_service().delete_payment(payment_id)
    return {"invoice": invoice.to_dict(include_payments=True)}, 200
