# Overview: Flask API routes for repair work orders.

from flask import Blueprint, request

from ..services import work_order_service
from .invoices import invoice_service

work_orders_bp = Blueprint("work_orders", __name__, url_prefix="/api/work-orders")


@work_orders_bp.get("")
def list_work_orders_route():
    """
    Query params: status, customer_id, page, per_page.
    """
    return work_order_service.list_work_orders(
        status=request.args.get("status"),
        customer_id=request.args.get("customer_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    ), 200


@work_orders_bp.post("")
def create_work_order_route():
    work_order = work_order_service.create_work_order(request.get_json(silent=True))
    return {"work_order": work_order.to_dict()}, 201


@work_orders_bp.get("/<int:work_order_id>")
def get_work_order_route(work_order_id: int):
    work_order = work_order_service.get_work_order(work_order_id)
    return {"work_order": work_order.to_dict()}, 200


@work_orders_bp.route("/<int:work_order_id>", methods=["PUT", "PATCH"])
def update_work_order_route(work_order_id: int):
    work_order = work_order_service.update_work_order(work_order_id, request.get_json(silent=True))
    return {"work_order": work_order.to_dict()}, 200


@work_orders_bp.post("/<int:work_order_id>/invoice")
def invoice_work_order_route(work_order_id: int):
    """
    Bill a completed work order: subtotal is its actual_cost, taxed at the
    service rate, due INVOICE_DUE_DAYS from now.
    """
    invoice = invoice_service().create_from_work_order(work_order_id)
    return {"invoice": invoice.to_dict(include_payments=True)}, 201
