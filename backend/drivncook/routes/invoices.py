# Overview: Flask API routes for invoices, royalty billing and invoice PDFs.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import pdf_response, success_response
from ..services import invoice_service, pdf_service
from ..services.pagination import parse_page_params
from ..validation import optional_int

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    """Query params: payment_status, franchise_id (admin), start_date/end_date on issue_date."""
    result = invoice_service.list_invoices(
        g.current_user,
        parse_page_params(request.args),
        payment_status=request.args.get("payment_status"),
        franchise_id=optional_int(request.args.get("franchise_id"), "franchise_id"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return success_response(result)


@invoices_bp.post("")
@require_auth
@require_permission("MANAGE_INVOICES")
def create_invoice_route():
    invoice = invoice_service.create_invoice(g.current_user, request.get_json(silent=True) or {})
    return success_response(invoice.to_dict(), "Facture créée", 201)


@invoices_bp.post("/generate")
@require_auth
@require_permission("GENERATE_INVOICES")
def generate_invoice_route():
    """Body: {franchise_id, period: "YYYY-MM"} (defaults to the current month)."""
    result = invoice_service.generate_royalty_invoice(g.current_user, request.get_json(silent=True) or {})
    return success_response(result, "Facture de redevances générée", 201)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    return success_response(invoice_service.get_invoice(g.current_user, invoice_id).to_dict())


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
def update_invoice_route(invoice_id: int):
    invoice = invoice_service.update_invoice(g.current_user, invoice_id, request.get_json(silent=True) or {})
    return success_response(invoice.to_dict(), "Facture mise à jour")


@invoices_bp.get("/<int:invoice_id>/download")
@require_auth
@require_permission("VIEW_INVOICES")
def download_invoice_route(invoice_id: int):
    invoice = invoice_service.get_invoice(g.current_user, invoice_id)
    return pdf_response(pdf_service.render_invoice_pdf(invoice), f"facture-{invoice.invoice_number}.pdf")
