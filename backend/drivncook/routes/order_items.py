# Overview: Flask API routes for order lines and their stock reservations.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import order_service

order_items_bp = Blueprint("order_items", __name__, url_prefix="/api/order-items")


@order_items_bp.get("")
@require_auth
@require_permission("VIEW_ORDERS")
def list_order_items_route():
    items = order_service.list_items(g.current_user, request.args.get("order_id"))
    return success_response([item.to_dict() for item in items])


@order_items_bp.post("")
@require_auth
@require_permission("CREATE_ORDERS")
def add_order_item_route():
    """
    Body: {order_id, product_id, warehouse_id, quantity, unit_price_cents?, notes?}.

    Reserves the quantity on the warehouse stock; 400 "Stock insuffisant"
    when the available quantity does not cover it.
    """
    item = order_service.add_item(g.current_user, request.get_json(silent=True) or {})
    return success_response(
        {"item": item.to_dict(), "order_total_cents": item.order.total_amount_cents},
        "Article ajouté",
        201,
    )


@order_items_bp.delete("/<int:item_id>")
@require_auth
@require_permission("UPDATE_ORDERS")
def remove_order_item_route(item_id: int):
    order = order_service.remove_item(g.current_user, item_id)
    return success_response(order.to_dict(include_items=True), "Article supprimé")
