# Overview: Food-truck fleet: vehicles, assignment to franchises, maintenance.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Franchise, Maintenance, User, Vehicle
from ..models.franchises import MAINTENANCE_STATUSES, MAINTENANCE_TYPES, VEHICLE_STATUSES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    min_length,
    min_value,
    money,
    one_of,
    require_fields,
    parse_int,
    validate_payload,
    value_between,
)
from . import audit_service, notification_service, policy_service
from .pagination import PageParams, paginate
from drivncook.time_utils import utcnow


def _year_rule(value):
    return value_between(1990, utcnow().year + 1)(value)


_VEHICLE_RULES = {
    "license_plate": min_length(2),
    "brand": min_length(2),
    "model": min_length(1),
    "year": _year_rule,
    "vin": min_length(17),
    "status": one_of(VEHICLE_STATUSES),
    "purchase_price_cents": money,
    "current_mileage": min_value(0),
    "latitude": value_between(-90, 90),
    "longitude": value_between(-180, 180),
}

ADMIN_VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields={
        "license_plate", "brand", "model", "year", "vin", "status",
        "purchase_date", "purchase_price_cents", "current_mileage",
        "last_inspection_date", "next_inspection_date", "insurance_number",
        "insurance_expiry", "franchise_id", "latitude", "longitude",
    },
    required_on_create={"license_plate", "brand", "model", "year", "vin"},
    rules=_VEHICLE_RULES,
)

# Franchisees report mileage and position of their own truck
FRANCHISEE_VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields={"current_mileage", "latitude", "longitude"},
    rules=_VEHICLE_RULES,
)

MAINTENANCE_POLICY = ModelValidationPolicy(
    writable_fields={
        "vehicle_id", "type", "status", "title", "description", "scheduled_date",
        "completed_date", "cost_cents", "mileage", "parts", "labor_hours", "notes",
        "next_maintenance_date",
    },
    required_on_create={"vehicle_id", "type", "title", "scheduled_date"},
    rules={
        "type": one_of(MAINTENANCE_TYPES),
        "status": one_of(MAINTENANCE_STATUSES),
        "title": min_length(2),
        "cost_cents": money,
        "mileage": min_value(0),
        "labor_hours": min_value(0),
    },
)

VEHICLE_SORTABLE = {"created_at", "license_plate", "brand", "year", "status", "current_mileage"}
MAINTENANCE_SORTABLE = {"created_at", "scheduled_date", "status", "type", "cost_cents"}


def require_vehicle(vehicle_id: int) -> Vehicle:
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Véhicule introuvable")
    return vehicle


def _check_unique(patch: dict, exclude_id: int | None = None) -> None:
    for column, label in ((Vehicle.license_plate, "Cette immatriculation"), (Vehicle.vin, "Ce numéro VIN")):
        value = patch.get(column.key)
        if not value:
            continue
        q = db.session.query(Vehicle.id).filter(column == value)
        if exclude_id:
            q = q.filter(Vehicle.id != exclude_id)
        if q.first():
            raise ConflictError(f"{label} est déjà enregistré")


def _require_assignable(franchise_id: int | None) -> Franchise | None:
    if franchise_id is None:
        return None
    franchise = db.session.get(Franchise, franchise_id)
    if franchise is None:
        raise BusinessRuleError("Franchise introuvable")
    return franchise


def _notify_assignment(vehicle: Vehicle, franchise: Franchise | None) -> None:
    label = f"{vehicle.brand} {vehicle.model} ({vehicle.license_plate})"
    if franchise is not None:
        notification_service.notify_franchisee(
            franchise,
            type="VEHICLE_ASSIGNED",
            title="Véhicule attribué",
            message=f"Le véhicule {label} a été attribué à votre franchise.",
            related_entity_id=vehicle.id,
            related_entity_type="vehicle",
            action_url="/franchise/vehicles",
        )
    notification_service.notify_admins(
        type="VEHICLE_ASSIGNED",
        title="Attribution de véhicule modifiée",
        message=(
            f"Le véhicule {label} est attribué à {franchise.business_name}."
            if franchise is not None else f"Le véhicule {label} n'est plus attribué."
        ),
        franchise_id=franchise.id if franchise else None,
        related_entity_id=vehicle.id,
        related_entity_type="vehicle",
        action_url=f"/admin/vehicles/{vehicle.id}",
    )


def list_vehicles(
    actor: User,
    params: PageParams,
    *,
    status: str | None = None,
    franchise_id: int | None = None,
    search: str | None = None,
) -> dict:
    query = db.session.query(Vehicle)
    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        query = query.filter(Vehicle.franchise_id == scope)
    elif franchise_id is not None:
        query = query.filter(Vehicle.franchise_id == franchise_id)
    if status:
        query = query.filter(Vehicle.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Vehicle.license_plate.ilike(like),
            Vehicle.brand.ilike(like),
            Vehicle.model.ilike(like),
        ))
    return paginate(query, Vehicle, params, sortable=VEHICLE_SORTABLE)


def create_vehicle(actor: User, payload: dict) -> Vehicle:
    policy_service.authorize(actor, "MANAGE_VEHICLES")
    patch = validate_payload(model=Vehicle, payload=payload, policy=ADMIN_VEHICLE_POLICY, partial=False)
    _check_unique(patch)
    franchise = _require_assignable(patch.get("franchise_id"))

    vehicle = Vehicle(**patch)
    if franchise is not None:
        vehicle.assignment_date = utcnow()
        if "status" not in patch:
            vehicle.status = "ASSIGNED"
    db.session.add(vehicle)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="vehicles",
        record_id=vehicle.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(vehicle),
    )
    db.session.commit()

    if franchise is not None:
        _notify_assignment(vehicle, franchise)
    return vehicle


def get_vehicle(actor: User, vehicle_id: int) -> Vehicle:
    vehicle = require_vehicle(vehicle_id)
    policy_service.authorize(actor, "VIEW_VEHICLES", vehicle)
    return vehicle


def update_vehicle(actor: User, vehicle_id: int, payload: dict) -> Vehicle:
    vehicle = require_vehicle(vehicle_id)
    if actor.is_admin:
        policy_service.authorize(actor, "MANAGE_VEHICLES")
        policy = ADMIN_VEHICLE_POLICY
    else:
        policy_service.authorize(actor, "UPDATE_VEHICLE_STATUS", vehicle)
        policy = FRANCHISEE_VEHICLE_POLICY

    patch = validate_payload(model=Vehicle, payload=payload, policy=policy, partial=True)
    _check_unique(patch, exclude_id=vehicle.id)

    assignment_changed = "franchise_id" in patch and patch["franchise_id"] != vehicle.franchise_id
    franchise = _require_assignable(patch.get("franchise_id")) if assignment_changed else None

    before = audit_service.snapshot(vehicle)
    for key, value in patch.items():
        setattr(vehicle, key, value)

    if assignment_changed:
        vehicle.assignment_date = utcnow() if franchise is not None else None
        if "status" not in patch:
            if franchise is not None and vehicle.status == "AVAILABLE":
                vehicle.status = "ASSIGNED"
            elif franchise is None and vehicle.status == "ASSIGNED":
                vehicle.status = "AVAILABLE"

    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="vehicles",
        record_id=vehicle.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(vehicle),
    )
    db.session.commit()

    if assignment_changed:
        _notify_assignment(vehicle, franchise)
    return vehicle


def delete_vehicle(actor: User, vehicle_id: int) -> None:
    policy_service.authorize(actor, "MANAGE_VEHICLES")
    vehicle = require_vehicle(vehicle_id)

    in_progress = (
        db.session.query(Maintenance.id)
        .filter(Maintenance.vehicle_id == vehicle.id, Maintenance.status == "IN_PROGRESS")
        .count()
    )
    if in_progress:
        raise BusinessRuleError("Impossible de supprimer un véhicule en cours de maintenance")

    before = audit_service.snapshot(vehicle)
    db.session.query(Maintenance).filter(Maintenance.vehicle_id == vehicle.id).delete(synchronize_session=False)
    db.session.delete(vehicle)
    audit_service.record(
        action="DELETE",
        table_name="vehicles",
        record_id=vehicle_id,
        user_id=actor.id,
        old_values=before,
    )
    db.session.commit()


# -- maintenance ------------------------------------------------------------

def list_maintenance(
    actor: User,
    params: PageParams,
    *,
    vehicle_id: int | None = None,
    status: str | None = None,
    type: str | None = None,
) -> dict:
    query = db.session.query(Maintenance).join(Vehicle, Maintenance.vehicle_id == Vehicle.id)
    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        query = query.filter(Vehicle.franchise_id == scope)
    if vehicle_id is not None:
        query = query.filter(Maintenance.vehicle_id == vehicle_id)
    if status:
        query = query.filter(Maintenance.status == status)
    if type:
        query = query.filter(Maintenance.type == type)
    return paginate(query, Maintenance, params, sortable=MAINTENANCE_SORTABLE)


def create_maintenance(actor: User, payload: dict) -> Maintenance:
    """
    Record a maintenance on a vehicle and alert the admins.

    A REPAIR is reported as a breakdown; anything else as maintenance due.
    """
    payload = payload or {}
    require_fields(payload, "vehicle_id")
    vehicle = require_vehicle(parse_int(payload["vehicle_id"], "vehicle_id"))
    policy_service.authorize(actor, "MANAGE_MAINTENANCE", vehicle)

    patch = validate_payload(model=Maintenance, payload=payload, policy=MAINTENANCE_POLICY, partial=False)
    maintenance = Maintenance(**patch)
    maintenance.vehicle_id = vehicle.id
    maintenance.created_by_id = actor.id
    if maintenance.status == "IN_PROGRESS":
        vehicle.status = "MAINTENANCE"
    db.session.add(maintenance)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="maintenances",
        record_id=maintenance.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(maintenance),
    )
    db.session.commit()

    label = f"{vehicle.brand} {vehicle.model} ({vehicle.license_plate})"
    if maintenance.type == "REPAIR":
        notification_service.notify_admins(
            type="VEHICLE_BREAKDOWN",
            priority="HIGH",
            title="Panne de véhicule",
            message=f"Réparation signalée sur {label}: {maintenance.title}.",
            franchise_id=vehicle.franchise_id,
            related_entity_id=vehicle.id,
            related_entity_type="vehicle",
            action_url=f"/admin/vehicles/{vehicle.id}",
        )
    else:
        notification_service.notify_admins(
            type="VEHICLE_MAINTENANCE_DUE",
            title="Maintenance planifiée",
            message=f"{maintenance.title} prévue pour {label}.",
            franchise_id=vehicle.franchise_id,
            related_entity_id=vehicle.id,
            related_entity_type="vehicle",
            action_url=f"/admin/vehicles/{vehicle.id}",
        )
    return maintenance


def update_maintenance(actor: User, maintenance_id: int, payload: dict) -> Maintenance:
    maintenance = db.session.get(Maintenance, maintenance_id)
    if maintenance is None:
        raise NotFoundError("Maintenance introuvable")
    policy_service.authorize(actor, "MANAGE_MAINTENANCE", maintenance)

    payload = {k: v for k, v in (payload or {}).items() if k != "vehicle_id"}
    patch = validate_payload(model=Maintenance, payload=payload, policy=MAINTENANCE_POLICY, partial=True)

    before = audit_service.snapshot(maintenance)
    for key, value in patch.items():
        setattr(maintenance, key, value)

    vehicle = maintenance.vehicle
    if maintenance.status == "IN_PROGRESS":
        vehicle.status = "MAINTENANCE"
    elif maintenance.status in {"COMPLETED", "CANCELLED"}:
        if maintenance.status == "COMPLETED" and maintenance.completed_date is None:
            maintenance.completed_date = utcnow()
        if vehicle.status == "MAINTENANCE":
            vehicle.status = "ASSIGNED" if vehicle.franchise_id else "AVAILABLE"

    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="maintenances",
        record_id=maintenance.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(maintenance),
    )
    db.session.commit()
    return maintenance
