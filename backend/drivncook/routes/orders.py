# Overview: Flask API routes for orders, order PDFs and transmission to head office.

# backend/drivncook/routes/orders.py
"""
Order API routes.

SECURITY: all routes require authentication. Franchisees are scoped to
their own franchise by the services (foreign order -> 403).
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import pdf_response, success_response
from ..services import order_service, pdf_service
from ..services.pagination import parse_page_params
from ..validation import optional_int

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
@require_permission("VIEW_ORDERS")
def list_orders_route():
    result = order_service.list_orders(
        g.current_user,
        parse_page_params(request.args),
        status=request.args.get("status"),
        search=request.args.get("search"),
        franchise_id=optional_int(request.args.get("franchise_id"), "franchise_id"),
    )
    return success_response(result)


@orders_bp.post("")
@require_auth
@require_permission("CREATE_ORDERS")
def create_order_route():
    """
    Create an order with status PENDING and a total of zero.

    Franchisees order for their own franchise; admins must pass franchise_id.
    """
    order = order_service.create_order(g.current_user, request.get_json(silent=True) or {})
    return success_response(order.to_dict(include_items=True), "Commande créée", 201)


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_ORDERS")
def get_order_route(order_id: int):
    order = order_service.get_order(g.current_user, order_id)
    return success_response(order.to_dict(include_items=True))


@orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("UPDATE_ORDERS")
def update_order_route(order_id: int):
    order = order_service.update_order(g.current_user, order_id, request.get_json(silent=True) or {})
    return success_response(order.to_dict(include_items=True), "Commande mise à jour")


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("DELETE_ORDERS")
def delete_order_route(order_id: int):
    order_service.delete_order(g.current_user, order_id)
    return success_response(None, "Commande supprimée")


@orders_bp.post("/<int:order_id>/transmit")
@require_auth
@require_permission("TRANSMIT_ORDERS")
def transmit_order_route(order_id: int):
    """Body: {attachment_urls?: [str]}. Emails the order PDF to the admins."""
    result = order_service.transmit_order(g.current_user, order_id, request.get_json(silent=True) or {})
    return success_response(result, "Commande transmise")


@orders_bp.get("/<int:order_id>/download")
@require_auth
@require_permission("VIEW_ORDERS")
def download_order_route(order_id: int):
    order = order_service.get_order(g.current_user, order_id)
    return pdf_response(pdf_service.render_order_pdf(order), f"commande-{order.order_number}.pdf")
