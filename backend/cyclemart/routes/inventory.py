# Overview: Flask API routes for inventory items; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    """
    Query params: search (name/sku/brand), category, type, page, per_page.
    """
    return inventory_service.list_items(
        search=request.args.get("search"),
        category=request.args.get("category"),
        item_type=request.args.get("type"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    ), 200


@inventory_bp.post("")
def create_inventory_route():
    item = inventory_service.create_item(request.get_json(silent=True))
    return {"item": item.to_dict()}, 201


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Items at or below minimum_stock, lowest quantity first."""
    items = inventory_service.low_stock_items()
    return {"items": [i.to_dict() for i in items], "count": len(items)}, 200


@inventory_bp.get("/<int:item_id>")
def get_inventory_route(item_id: int):
    return {"item": inventory_service.get_item(item_id).to_dict()}, 200


@inventory_bp.route("/<int:item_id>", methods=["PUT", "PATCH"])
def update_inventory_route(item_id: int):
    """
    Catalogue edits plus manual stock correction. A "quantity" in the body
    sets on-hand to that absolute value.
    """
    item = inventory_service.update_item(item_id, request.get_json(silent=True))
    return {"item": item.to_dict()}, 200


@inventory_bp.delete("/<int:item_id>")
def delete_inventory_route(item_id: int):
    inventory_service.delete_item(item_id)
    return "", 204
