# Overview: Daily sales declarations and the royalty owed on them.

from __future__ import annotations

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Franchise, SalesReport, User
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    min_value,
    money,
    parse_int,
    validate_payload,
)
from . import audit_service, policy_service
from .pagination import PageParams, paginate
from drivncook.time_utils import parse_iso_date

SALES_REPORT_POLICY = ModelValidationPolicy(
    writable_fields={
        "report_date", "daily_sales_cents", "transaction_count",
        "average_ticket_cents", "location", "notes",
    },
    required_on_create={"report_date", "daily_sales_cents"},
    rules={
        "daily_sales_cents": money,
        "transaction_count": min_value(0),
        "average_ticket_cents": money,
    },
)

SORTABLE = {"created_at", "report_date", "daily_sales_cents", "royalty_amount_cents"}


def compute_royalty(daily_sales_cents: int, royalty_rate: float) -> int:
    return int(round(daily_sales_cents * (royalty_rate or 0) / 100))


def list_reports(
    actor: User,
    params: PageParams,
    *,
    franchise_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    query = db.session.query(SalesReport)
    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        query = query.filter(SalesReport.franchise_id == scope)
    elif franchise_id is not None:
        query = query.filter(SalesReport.franchise_id == franchise_id)
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise ValidationError("Données invalides: start_date/end_date: doit être une date (AAAA-MM-JJ)")
    if start:
        query = query.filter(SalesReport.report_date >= start)
    if end:
        query = query.filter(SalesReport.report_date <= end)
    return paginate(query, SalesReport, params, sortable=SORTABLE)


def create_report(actor: User, payload: dict) -> SalesReport:
    """
    Declare one day of sales. The franchise comes from the session for
    franchisees; admins pass franchise_id.
    """
    policy_service.authorize(actor, "CREATE_SALES_REPORTS")
    payload = payload or {}

    if policy_service.is_franchisee(actor):
        franchise_id = actor.franchise_id
        if franchise_id is None:
            raise BusinessRuleError("Utilisateur non associé à une franchise")
    else:
        if payload.get("franchise_id") in (None, ""):
            raise ValidationError("Données invalides: franchise_id: champ requis")
        franchise_id = parse_int(payload["franchise_id"], "franchise_id")

    franchise = db.session.get(Franchise, franchise_id)
    if franchise is None:
        raise NotFoundError("Franchise introuvable")

    patch = validate_payload(model=SalesReport, payload=payload, policy=SALES_REPORT_POLICY, partial=False)

    duplicate = (
        db.session.query(SalesReport.id)
        .filter(SalesReport.franchise_id == franchise.id, SalesReport.report_date == patch["report_date"])
        .first()
    )
    if duplicate:
        raise BusinessRuleError("Un rapport existe déjà pour cette date")

    report = SalesReport(franchise_id=franchise.id, created_by_id=actor.id, **patch)
    report.transaction_count = report.transaction_count or 0
    if not report.average_ticket_cents and report.transaction_count > 0:
        report.average_ticket_cents = int(round(report.daily_sales_cents / report.transaction_count))
    report.average_ticket_cents = report.average_ticket_cents or 0
    report.royalty_amount_cents = compute_royalty(report.daily_sales_cents, franchise.royalty_rate)

    db.session.add(report)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="sales_reports",
        record_id=report.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(report),
    )
    db.session.commit()
    return report
