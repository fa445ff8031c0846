# Overview: Flask API routes for franchises; parses input and returns JSON responses.

# backend/drivncook/routes/franchises.py
"""
Franchise routes.

SECURITY: all routes require authentication.
- Listing and creation are admin operations
- A franchisee reads and updates only their own franchise
- Deletion is reserved to SUPER_ADMIN
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import pdf_response, success_response
from ..services import franchise_service, pdf_service
from ..services.pagination import parse_page_params

franchises_bp = Blueprint("franchises", __name__, url_prefix="/api/franchises")


@franchises_bp.get("")
@require_auth
@require_permission("MANAGE_FRANCHISES")
def list_franchises_route():
    """
    Query params: search (business name, SIRET, city, contact email),
    status, page, limit, sort_by, sort_order.
    """
    result = franchise_service.list_franchises(
        parse_page_params(request.args),
        search=request.args.get("search"),
        status=request.args.get("status"),
    )
    return success_response(result)


@franchises_bp.post("")
@require_auth
@require_permission("MANAGE_FRANCHISES")
def create_franchise_route():
    franchise = franchise_service.create_franchise(g.current_user, request.get_json(silent=True) or {})
    return success_response(franchise.to_dict(), "Franchise créée", 201)


@franchises_bp.get("/<int:franchise_id>")
@require_auth
@require_permission("VIEW_FRANCHISES")
def get_franchise_route(franchise_id: int):
    franchise = franchise_service.get_franchise(g.current_user, franchise_id)
    return success_response(franchise.to_dict())


@franchises_bp.put("/<int:franchise_id>")
@require_auth
def update_franchise_route(franchise_id: int):
    franchise = franchise_service.update_franchise(
        g.current_user, franchise_id, request.get_json(silent=True) or {}
    )
    return success_response(franchise.to_dict(), "Franchise mise à jour")


@franchises_bp.delete("/<int:franchise_id>")
@require_auth
@require_permission("DELETE_FRANCHISES")
def delete_franchise_route(franchise_id: int):
    franchise_service.delete_franchise(g.current_user, franchise_id)
    return success_response(None, "Franchise supprimée")


@franchises_bp.post("/<int:franchise_id>/validate-documents")
@require_auth
@require_permission("VALIDATE_FRANCHISE_DOCUMENTS")
def validate_documents_route(franchise_id: int):
    result = franchise_service.validate_documents(g.current_user, franchise_id)
    return success_response(result, "Documents validés")


@franchises_bp.post("/<int:franchise_id>/request-documents")
@require_auth
@require_permission("VALIDATE_FRANCHISE_DOCUMENTS")
def request_documents_route(franchise_id: int):
    """Body: {missing_documents?: [str], custom_message?: str}."""
    data = request.get_json(silent=True) or {}
    result = franchise_service.request_documents(
        g.current_user,
        franchise_id,
        missing_documents=data.get("missing_documents"),
        custom_message=data.get("custom_message"),
    )
    return success_response(result, "Demande de documents envoyée")


@franchises_bp.get("/<int:franchise_id>/contract")
@require_auth
@require_permission("VIEW_FRANCHISES")
def contract_route(franchise_id: int):
    franchise = franchise_service.get_franchise(g.current_user, franchise_id)
    pdf = pdf_service.render_contract_pdf(franchise)
    return pdf_response(pdf, f"contrat-franchise-{franchise.id}.pdf")

