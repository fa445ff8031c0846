# Overview: Flask API route for dashboard statistics.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import dashboard_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_permission("VIEW_DASHBOARD")
def stats_route():
    """Admins get network-wide figures, franchisees their own. Query: period (days, default 30)."""
    return success_response(dashboard_service.get_stats(g.current_user, request.args.get("period")))
