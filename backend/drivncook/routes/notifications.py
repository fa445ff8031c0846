# Overview: Flask API routes for the in-app notification inbox.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import notification_service
from ..services.pagination import parse_page_params

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def list_notifications_route():
    """Own notifications plus the ones targeted at the caller's role. Includes unread_count."""
    result = notification_service.list_for_user(
        g.current_user,
        parse_page_params(request.args),
        status=request.args.get("status"),
        type=request.args.get("type"),
    )
    return success_response(result)


@notifications_bp.patch("/<int:notification_id>")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def update_notification_route(notification_id: int):
    data = request.get_json(silent=True) or {}
    notification = notification_service.update_status(g.current_user, notification_id, data.get("status"))
    return success_response(notification.to_dict())


@notifications_bp.post("/mark-all-read")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def mark_all_read_route():
    count = notification_service.mark_all_read(g.current_user)
    return success_response({"updated": count}, "Notifications marquées comme lues")
