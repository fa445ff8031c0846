# Overview: Append-only audit log of create/update/delete actions.

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from ..extensions import db
from ..models import AuditLog
from drivncook.time_utils import to_utc_z

"""
Audit log invariants

- Append-only: rows are never updated or deleted.
- Written inside the same DB transaction as the change it records
  (flush only; the caller commits).
- Snapshots are JSON-safe dicts (datetimes serialized).
"""


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def snapshot(entity) -> dict | None:
    """Serializable copy of an entity's state for old/new values."""
    if entity is None:
        return None
    data = entity.to_dict() if hasattr(entity, "to_dict") else dict(entity)
    return _json_safe(data)


def record(
    *,
    action: str,
    table_name: str,
    record_id: int,
    user_id: int | None = None,
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        table_name=table_name,
        record_id=record_id,
        user_id=user_id,
        old_values=_json_safe(old_values),
        new_values=_json_safe(new_values),
    )
    db.session.add(entry)
    db.session.flush()
    return entry
