# Overview: Flask API routes for warehouses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import warehouse_service
from ..services.pagination import parse_page_params

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
@require_permission("VIEW_WAREHOUSES")
def list_warehouses_route():
    result = warehouse_service.list_warehouses(
        parse_page_params(request.args),
        search=request.args.get("search"),
        region=request.args.get("region"),
    )
    return success_response(result)


@warehouses_bp.post("")
@require_auth
@require_permission("MANAGE_WAREHOUSES")
def create_warehouse_route():
    warehouse = warehouse_service.create_warehouse(g.current_user, request.get_json(silent=True) or {})
    return success_response(warehouse.to_dict(), "Entrepôt créé", 201)


@warehouses_bp.get("/<int:warehouse_id>")
@require_auth
@require_permission("VIEW_WAREHOUSES")
def get_warehouse_route(warehouse_id: int):
    return success_response(warehouse_service.require_warehouse(warehouse_id).to_dict())


@warehouses_bp.put("/<int:warehouse_id>")
@require_auth
@require_permission("MANAGE_WAREHOUSES")
def update_warehouse_route(warehouse_id: int):
    warehouse = warehouse_service.update_warehouse(
        g.current_user, warehouse_id, request.get_json(silent=True) or {}
    )
    return success_response(warehouse.to_dict(), "Entrepôt mis à jour")
