# Overview: Flask API routes for daily sales declarations.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import sales_report_service
from ..services.pagination import parse_page_params
from ..validation import optional_int

sales_reports_bp = Blueprint("sales_reports", __name__, url_prefix="/api/sales-reports")


@sales_reports_bp.get("")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def list_sales_reports_route():
    result = sales_report_service.list_reports(
        g.current_user,
        parse_page_params(request.args),
        franchise_id=optional_int(request.args.get("franchise_id"), "franchise_id"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return success_response(result)


@sales_reports_bp.post("")
@require_auth
@require_permission("CREATE_SALES_REPORTS")
def create_sales_report_route():
    """The royalty amount is computed from the franchise royalty rate."""
    report = sales_report_service.create_report(g.current_user, request.get_json(silent=True) or {})
    return success_response(report.to_dict(), "Rapport de ventes enregistré", 201)
