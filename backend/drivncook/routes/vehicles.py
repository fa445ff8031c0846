# Overview: Flask API routes for vehicles and their maintenance records.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import vehicle_service
from ..services.pagination import parse_page_params
from ..validation import optional_int

vehicles_bp = Blueprint("vehicles", __name__, url_prefix="/api/vehicles")
maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@vehicles_bp.get("")
@require_auth
@require_permission("VIEW_VEHICLES")
def list_vehicles_route():
    """
    Franchisees only see the vehicles of their franchise.

    Query params: status, franchise_id (admin), search (plate, brand, model).
    """
    result = vehicle_service.list_vehicles(
        g.current_user,
        parse_page_params(request.args),
        status=request.args.get("status"),
        franchise_id=optional_int(request.args.get("franchise_id"), "franchise_id"),
        search=request.args.get("search"),
    )
    return success_response(result)


@vehicles_bp.post("")
@require_auth
@require_permission("MANAGE_VEHICLES")
def create_vehicle_route():
    vehicle = vehicle_service.create_vehicle(g.current_user, request.get_json(silent=True) or {})
    return success_response(vehicle.to_dict(), "Véhicule créé", 201)


@vehicles_bp.get("/<int:vehicle_id>")
@require_auth
@require_permission("VIEW_VEHICLES")
def get_vehicle_route(vehicle_id: int):
    return success_response(vehicle_service.get_vehicle(g.current_user, vehicle_id).to_dict())


@vehicles_bp.put("/<int:vehicle_id>")
@require_auth
def update_vehicle_route(vehicle_id: int):
    vehicle = vehicle_service.update_vehicle(g.current_user, vehicle_id, request.get_json(silent=True) or {})
    return success_response(vehicle.to_dict(), "Véhicule mis à jour")


@vehicles_bp.delete("/<int:vehicle_id>")
@require_auth
@require_permission("MANAGE_VEHICLES")
def delete_vehicle_route(vehicle_id: int):
    vehicle_service.delete_vehicle(g.current_user, vehicle_id)
    return success_response(None, "Véhicule supprimé")


@maintenance_bp.get("")
@require_auth
@require_permission("VIEW_VEHICLES")
def list_maintenance_route():
    result = vehicle_service.list_maintenance(
        g.current_user,
        parse_page_params(request.args),
        vehicle_id=optional_int(request.args.get("vehicle_id"), "vehicle_id"),
        status=request.args.get("status"),
        type=request.args.get("type"),
    )
    return success_response(result)


@maintenance_bp.post("")
@require_auth
@require_permission("MANAGE_MAINTENANCE")
def create_maintenance_route():
    maintenance = vehicle_service.create_maintenance(g.current_user, request.get_json(silent=True) or {})
    return success_response(maintenance.to_dict(), "Maintenance enregistrée", 201)


@maintenance_bp.put("/<int:maintenance_id>")
@require_auth
@require_permission("MANAGE_MAINTENANCE")
def update_maintenance_route(maintenance_id: int):
    maintenance = vehicle_service.update_maintenance(
        g.current_user, maintenance_id, request.get_json(silent=True) or {}
    )
    return success_response(maintenance.to_dict(), "Maintenance mise à jour")
