# Overview: Central warehouses supplying the franchises.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import User, Warehouse
from ..validation import (
    ModelValidationPolicy,
    POSTAL_CODE_RE,
    is_email,
    matches,
    min_length,
    min_value,
    validate_payload,
    value_between,
)
from . import audit_service, policy_service
from .pagination import PageParams, paginate

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "address", "city", "postal_code", "region", "phone", "email",
        "capacity", "is_active", "latitude", "longitude",
    },
    required_on_create={"name", "address", "city", "postal_code", "region", "capacity"},
    rules={
        "name": min_length(2),
        "address": min_length(5),
        "city": min_length(2),
        "postal_code": matches(POSTAL_CODE_RE, "doit contenir 5 chiffres"),
        "region": min_length(2),
        "email": is_email,
        "capacity": min_value(1),
        "latitude": value_between(-90, 90),
        "longitude": value_between(-180, 180),
    },
)

SORTABLE = {"created_at", "name", "city", "region", "capacity"}


def require_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError("Entrepôt introuvable")
    return warehouse


def list_warehouses(params: PageParams, *, search: str | None = None, region: str | None = None) -> dict:
    query = db.session.query(Warehouse)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Warehouse.name.ilike(like), Warehouse.city.ilike(like)))
    if region:
        query = query.filter(Warehouse.region == region)
    return paginate(query, Warehouse, params, sortable=SORTABLE)


def create_warehouse(actor: User, payload: dict) -> Warehouse:
    policy_service.authorize(actor, "MANAGE_WAREHOUSES")
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    warehouse = Warehouse(**patch)
    db.session.add(warehouse)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="warehouses",
        record_id=warehouse.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(warehouse),
    )
    db.session.commit()
    return warehouse


def update_warehouse(actor: User, warehouse_id: int, payload: dict) -> Warehouse:
    policy_service.authorize(actor, "MANAGE_WAREHOUSES")
    warehouse = require_warehouse(warehouse_id)
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)

    before = audit_service.snapshot(warehouse)
    for key, value in patch.items():
        setattr(warehouse, key, value)
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="warehouses",
        record_id=warehouse.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(warehouse),
    )
    db.session.commit()
    return warehouse
