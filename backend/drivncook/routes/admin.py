# Overview: Flask API routes reserved to head office staff.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import notification_service, order_service
from ..services.pagination import parse_page_params

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/orders/<int:order_id>/confirm-reception")
@require_auth
@require_permission("CONFIRM_ORDER_RECEPTION")
def confirm_reception_route(order_id: int):
    order = order_service.confirm_reception(g.current_user, order_id)
    return success_response(order.to_dict(), "Réception de la commande confirmée")


@admin_bp.get("/notifications")
@require_auth
@require_permission("VIEW_ADMIN_NOTIFICATIONS")
def admin_notifications_route():
    result = notification_service.list_admin(
        parse_page_params(request.args),
        status=request.args.get("status"),
        type=request.args.get("type"),
    )
    return success_response(result)
