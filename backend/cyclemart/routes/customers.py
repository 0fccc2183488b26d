# Overview: Flask API routes for customers and their registered machines.

from flask import Blueprint, request

from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
machines_bp = Blueprint("sewing_machines", __name__, url_prefix="/api/sewing-machines")


@customers_bp.get("")
def list_customers_route():
    """
    Query params: search (name/phone/email substring), page, per_page.
    """
    return customer_service.list_customers(
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    ), 200


@customers_bp.post("")
def create_customer_route():
    customer = customer_service.create_customer(request.get_json(silent=True))
    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    data = customer.to_dict()
    data["machines"] = [m.to_dict() for m in customer.machines]
    return {"customer": data}, 200


@customers_bp.route("/<int:customer_id>", methods=["PUT", "PATCH"])
def update_customer_route(customer_id: int):
    customer = customer_service.update_customer(customer_id, request.get_json(silent=True))
    return {"customer": customer.to_dict()}, 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    customer_service.delete_customer(customer_id)
    return "", 204


@machines_bp.get("")
def list_machines_route():
    machines = customer_service.list_machines(customer_id=request.args.get("customer_id", type=int))
    return {"items": [m.to_dict() for m in machines], "count": len(machines)}, 200


@machines_bp.post("")
def create_machine_route():
    machine = customer_service.create_machine(request.get_json(silent=True))
    return {"machine": machine.to_dict()}, 201
