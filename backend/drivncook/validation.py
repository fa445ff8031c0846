from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeMeta

from drivncook.time_utils import parse_iso_datetime


# Maximum money amount: 99 999 999.99 EUR
MAX_AMOUNT_CENTS = 9_999_999_999

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
POSTAL_CODE_RE = re.compile(r"^\d{5}$")
SIRET_RE = re.compile(r"^\d{14}$")


class ValidationError(ValueError):
    """400-level input problem. Carries the list of field-level messages."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class ConflictError(ValueError):
    """Business rule conflict on uniqueness (duplicate SKU, SIRET, email...)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - rules: extra per-field checks, each returning an error message or None
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    rules: dict[str, Callable[[Any], str | None]] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValueError("doit être un entier")
            try:
                return int(stripped)
            except ValueError:
                raise ValueError("doit être un entier")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise ValueError("doit être un entier")

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValueError("doit être un nombre")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValueError("doit être un nombre")
        raise ValueError("doit être un nombre")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValueError("doit être une date ISO-8601")
            if dt is None:
                raise ValueError("doit être une date ISO-8601")
            return dt
        raise ValueError("doit être une date ISO-8601")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValueError("doit être une date (AAAA-MM-JJ)")
            if dt is None:
                raise ValueError("doit être une date (AAAA-MM-JJ)")
            return dt.date()
        raise ValueError("doit être une date (AAAA-MM-JJ)")

    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - policy.rules (ranges, formats)
    Returns a cleaned patch dict with only writable fields.

    Unknown keys are ignored. All field problems are collected and raised
    together as one ValidationError.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Corps JSON invalide")

    cols = _columns_by_key(model)
    errors: list[str] = []
    patch: dict = {}

    if not partial:
        for name in sorted(policy.required_on_create):
            if payload.get(name) in (None, ""):
                errors.append(f"{name}: champ requis")

    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in cols:
            continue
        col = cols[key]

        if raw is None or (raw == "" and col.nullable):
            if not col.nullable:
                if f"{key}: champ requis" not in errors:
                    errors.append(f"{key}: ne peut pas être vide")
                continue
            patch[key] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValueError as e:
            errors.append(f"{key}: {e}")
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            errors.append(f"{key}: ne peut pas être vide")
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append(f"{key}: longueur maximale {col.type.length}")
                continue

        rule = policy.rules.get(key)
        if rule is not None:
            problem = rule(val)
            if problem:
                errors.append(f"{key}: {problem}")
                continue

        patch[key] = val

    if errors:
        raise ValidationError(f"Données invalides: {', '.join(errors)}", errors)

    return patch


# -- reusable rules --------------------------------------------------------

def min_length(n: int):
    def _rule(value):
        if isinstance(value, str) and len(value) < n:
            return f"au moins {n} caractères"
        return None
    return _rule


def min_value(n):
    def _rule(value):
        if value is not None and value < n:
            return f"doit être >= {n}"
        return None
    return _rule


def value_between(lo, hi):
    def _rule(value):
        if value is not None and not (lo <= value <= hi):
            return f"doit être compris entre {lo} et {hi}"
        return None
    return _rule


def one_of(choices):
    def _rule(value):
        if value not in choices:
            return f"valeur invalide (attendu: {', '.join(sorted(choices))})"
        return None
    return _rule


def matches(pattern: re.Pattern, message: str):
    def _rule(value):
        if isinstance(value, str) and not pattern.match(value):
            return message
        return None
    return _rule


def is_email(value):
    if isinstance(value, str) and not EMAIL_RE.match(value):
        return "email invalide"
    return None


def money(value):
    if value is None:
        return None
    if value < 0:
        return "doit être >= 0"
    if value > MAX_AMOUNT_CENTS:
        return f"ne peut pas dépasser {MAX_AMOUNT_CENTS}"
    return None


def require_fields(payload: dict, *names: str) -> None:
    """Presence check for routes whose body is not mapped to one model."""
    missing = [n for n in names if payload.get(n) in (None, "")]
    if missing:
        raise ValidationError(
            f"Données invalides: {', '.join(f'{n}: champ requis' for n in missing)}",
            [f"{n}: champ requis" for n in missing],
        )


def parse_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Données invalides: {name}: doit être un entier")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"Données invalides: {name}: doit être un entier")


def optional_int(value, name: str) -> int | None:
    """Query-string variant of parse_int: empty means no filter."""
    if value in (None, ""):
        return None
    return parse_int(value, name)


def optional_bool(value) -> bool | None:
    if value in (None, ""):
        return None
    return str(value).strip().lower() in ("1", "true", "yes", "on")
