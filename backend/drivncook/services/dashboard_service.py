# Overview: Aggregated figures for the admin and franchisee dashboards.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Franchise, Invoice, Order, SalesReport, User, Vehicle
from ..models.franchises import FRANCHISE_STATUSES
from . import policy_service
from drivncook.time_utils import utcnow

DEFAULT_PERIOD_DAYS = 30
UNPAID_STATUSES = ("PENDING", "OVERDUE")


def _parse_period(raw) -> int:
    try:
        days = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_PERIOD_DAYS
    return min(max(days, 1), 366)


def _sales_totals(since, franchise_id: int | None = None) -> dict:
    query = db.session.query(
        func.coalesce(func.sum(SalesReport.daily_sales_cents), 0),
        func.coalesce(func.sum(SalesReport.royalty_amount_cents), 0),
        func.coalesce(func.sum(SalesReport.transaction_count), 0),
        func.count(SalesReport.id),
    ).filter(SalesReport.report_date >= since)
    if franchise_id is not None:
        query = query.filter(SalesReport.franchise_id == franchise_id)
    sales, royalties, transactions, reports = query.one()
    return {
        "total_sales_cents": int(sales),
        "total_royalties_cents": int(royalties),
        "transaction_count": int(transactions),
        "report_count": int(reports),
    }


def _unpaid_invoices(franchise_id: int | None = None) -> dict:
    query = db.session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.amount_cents), 0),
    ).filter(Invoice.payment_status.in_(UNPAID_STATUSES))
    if franchise_id is not None:
        query = query.filter(Invoice.franchise_id == franchise_id)
    count, amount = query.one()
    return {"count": int(count), "amount_cents": int(amount)}


def _order_counts(franchise_id: int | None = None) -> dict:
    query = db.session.query(Order.status, func.count(Order.id)).group_by(Order.status)
    if franchise_id is not None:
        query = query.filter(Order.franchise_id == franchise_id)
    by_status = {status: int(n) for status, n in query.all()}
    return {
        "total": sum(by_status.values()),
        "pending": by_status.get("PENDING", 0) + by_status.get("DRAFT", 0),
        "by_status": by_status,
    }


def get_stats(actor: User, period=None) -> dict:
    days = _parse_period(period)
    since = (utcnow() - timedelta(days=days)).date()

    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        return {
            "role": actor.role,
            "period_days": days,
            "franchise_id": actor.franchise_id,
            "sales": _sales_totals(since, scope),
            "orders": _order_counts(scope),
            "unpaid_invoices": _unpaid_invoices(scope),
            "vehicles": db.session.query(Vehicle.id).filter(Vehicle.franchise_id == scope).count(),
        }

    franchise_rows = db.session.query(Franchise.status, func.count(Franchise.id)).group_by(Franchise.status).all()
    franchises = {status: 0 for status in sorted(FRANCHISE_STATUSES)}
    franchises.update({status: int(n) for status, n in franchise_rows})

    vehicle_rows = db.session.query(Vehicle.status, func.count(Vehicle.id)).group_by(Vehicle.status).all()
    vehicles = {status: int(n) for status, n in vehicle_rows}

    return {
        "role": actor.role,
        "period_days": days,
        "franchises": {"total": sum(franchises.values()), "by_status": franchises},
        "vehicles": {"total": sum(vehicles.values()), "by_status": vehicles},
        "orders": _order_counts(),
        "sales": _sales_totals(since),
        "unpaid_invoices": _unpaid_invoices(),
    }
