# Overview: Invoices: manual billing, monthly royalty generation, order invoices, overdue sweep.

from __future__ import annotations

import re
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Franchise, Invoice, Order, SalesReport, User
from ..models.finance import PAYMENT_STATUSES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    min_length,
    money,
    one_of,
    parse_int,
    validate_payload,
)
from . import audit_service, notification_service, policy_service, sequence_service
from .pagination import PageParams, paginate
from drivncook.time_utils import month_bounds, parse_iso_datetime, utcnow

PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")
ROYALTY_DUE_DAYS = 30
ORDER_INVOICE_DUE_DAYS = 7

INVOICE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"franchise_id", "due_date", "amount_cents", "description"},
    required_on_create={"franchise_id", "due_date", "amount_cents", "description"},
    rules={"amount_cents": money, "description": min_length(2)},
)

INVOICE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"payment_status", "due_date", "description", "pdf_url"},
    rules={"payment_status": one_of(PAYMENT_STATUSES), "description": min_length(2)},
)

SORTABLE = {"created_at", "issue_date", "due_date", "amount_cents", "invoice_number", "payment_status"}


def require_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Facture introuvable")
    return invoice


def _require_franchise(franchise_id: int) -> Franchise:
    franchise = db.session.get(Franchise, franchise_id)
    if franchise is None:
        raise NotFoundError("Franchise introuvable")
    return franchise


def _parse_bound(value: str | None, name: str):
    if not value:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"Données invalides: {name}: doit être une date ISO-8601")


def list_invoices(
    actor: User,
    params: PageParams,
    *,
    payment_status: str | None = None,
    franchise_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    query = db.session.query(Invoice)
    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        query = query.filter(Invoice.franchise_id == scope)
    elif franchise_id is not None:
        query = query.filter(Invoice.franchise_id == franchise_id)
    if payment_status:
        query = query.filter(Invoice.payment_status == payment_status)
    start = _parse_bound(start_date, "start_date")
    end = _parse_bound(end_date, "end_date")
    if start:
        query = query.filter(Invoice.issue_date >= start)
    if end:
        query = query.filter(Invoice.issue_date <= end)
    return paginate(query, Invoice, params, sortable=SORTABLE)


def get_invoice(actor: User, invoice_id: int) -> Invoice:
    invoice = require_invoice(invoice_id)
    policy_service.authorize(actor, "VIEW_INVOICES", invoice)
    return invoice


def _notify_generated(invoice: Invoice, *, admins: bool) -> None:
    amount = f"{invoice.amount_cents / 100:.2f} EUR"
    notification_service.notify_franchisee(
        invoice.franchise,
        type="INVOICE_GENERATED",
        title="Nouvelle facture",
        message=f"La facture {invoice.invoice_number} ({invoice.description}) de {amount} est disponible.",
        data={"invoice_number": invoice.invoice_number, "amount_cents": invoice.amount_cents},
        related_entity_id=invoice.id,
        related_entity_type="invoice",
        action_url=f"/franchise/invoices/{invoice.id}",
    )
    if admins:
        notification_service.notify_admins(
            type="INVOICE_GENERATED",
            title="Facture générée",
            message=f"Facture {invoice.invoice_number} de {amount} émise pour {invoice.franchise.business_name}.",
            franchise_id=invoice.franchise_id,
            related_entity_id=invoice.id,
            related_entity_type="invoice",
            action_url=f"/admin/invoices/{invoice.id}",
        )


def create_invoice(actor: User, payload: dict) -> Invoice:
    policy_service.authorize(actor, "MANAGE_INVOICES")
    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_CREATE_POLICY, partial=False)
    franchise = _require_franchise(patch["franchise_id"])

    invoice = Invoice(
        invoice_number=sequence_service.next_document_number("INVOICE"),
        issue_date=utcnow(),
        payment_status="PENDING",
        **patch,
    )
    db.session.add(invoice)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="invoices",
        record_id=invoice.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(invoice),
    )
    db.session.commit()
    current_app.logger.info("Invoice %s created for franchise %s", invoice.invoice_number, franchise.id)

    _notify_generated(invoice, admins=False)
    return invoice


def update_invoice(actor: User, invoice_id: int, payload: dict) -> Invoice:
    policy_service.authorize(actor, "MANAGE_INVOICES")
    invoice = require_invoice(invoice_id)
    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_UPDATE_POLICY, partial=True)

    before = audit_service.snapshot(invoice)
    for key, value in patch.items():
        setattr(invoice, key, value)
    if patch.get("payment_status") == "PAID" and invoice.paid_date is None:
        invoice.paid_date = utcnow()
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="invoices",
        record_id=invoice.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(invoice),
    )
    db.session.commit()
    return invoice


def parse_period(value: str | None) -> tuple[int, int]:
    """
    (year, month) from "YYYY-MM"; anything not shaped like that means the
    current month. A well-formed period with an impossible month is rejected.
    """
    match = PERIOD_RE.match((value or "").strip())
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise ValidationError("Données invalides: period: mois invalide", ["period: mois invalide"])
        return year, month
    now = utcnow()
    return now.year, now.month


def generate_royalty_invoice(actor: User, payload: dict) -> dict:
    """
    Bill a franchise the royalties of one month of sales reports.

    One invoice per (franchise, period), described "Redevances YYYY-MM".
    """
    policy_service.authorize(actor, "GENERATE_INVOICES")
    payload = payload or {}
    if payload.get("franchise_id") in (None, ""):
        raise ValidationError("Données invalides: franchise_id: champ requis")
    franchise = _require_franchise(parse_int(payload["franchise_id"], "franchise_id"))

    year, month = parse_period(payload.get("period"))
    period = f"{year:04d}-{month:02d}"
    description = f"Redevances {period}"

    duplicate = (
        db.session.query(Invoice.id)
        .filter(Invoice.franchise_id == franchise.id, Invoice.description == description)
        .first()
    )
    if duplicate:
        raise BusinessRuleError("Une facture pour cette période existe déjà")

    start, end = month_bounds(year, month)
    total, report_count = (
        db.session.query(
            func.coalesce(func.sum(SalesReport.royalty_amount_cents), 0),
            func.count(SalesReport.id),
        )
        .filter(
            SalesReport.franchise_id == franchise.id,
            SalesReport.report_date >= start,
            SalesReport.report_date < end,
        )
        .one()
    )
    if not report_count or total <= 0:
        raise BusinessRuleError("Aucune redevance à facturer pour cette période")

    now = utcnow()
    invoice = Invoice(
        invoice_number=sequence_service.next_document_number("INVOICE"),
        franchise_id=franchise.id,
        issue_date=now,
        due_date=now + timedelta(days=ROYALTY_DUE_DAYS),
        amount_cents=int(total),
        description=description,
        payment_status="PENDING",
    )
    db.session.add(invoice)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="invoices",
        record_id=invoice.id,
        user_id=actor.id,
        new_values={
            **audit_service.snapshot(invoice),
            "generated_from": {"period": period, "report_count": report_count},
        },
    )
    db.session.commit()
    current_app.logger.info(
        "Royalty invoice %s generated for franchise %s, period %s (%s reports)",
        invoice.invoice_number, franchise.id, period, report_count,
    )

    _notify_generated(invoice, admins=True)
    return {"invoice": invoice.to_dict(), "period": period, "report_count": report_count}


def find_or_create_order_invoice(order: Order) -> Invoice:
    """
    Invoice backing an order payment ("Commande CMD-..."), created on the
    first payment attempt with a 7-day due date.
    """
    description = f"Commande {order.order_number}"
    invoice = (
        db.session.query(Invoice)
        .filter(Invoice.franchise_id == order.franchise_id, Invoice.description == description)
        .order_by(Invoice.id.asc())
        .first()
    )
    if invoice is not None:
        if invoice.amount_cents != order.total_amount_cents and invoice.payment_status != "PAID":
            invoice.amount_cents = order.total_amount_cents
            db.session.commit()
        return invoice

    now = utcnow()
    invoice = Invoice(
        invoice_number=sequence_service.next_document_number("INVOICE"),
        franchise_id=order.franchise_id,
        issue_date=now,
        due_date=now + timedelta(days=ORDER_INVOICE_DUE_DAYS),
        amount_cents=order.total_amount_cents,
        description=description,
        payment_status="PENDING",
    )
    db.session.add(invoice)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="invoices",
        record_id=invoice.id,
        new_values={**audit_service.snapshot(invoice), "order_id": order.id},
    )
    db.session.commit()
    return invoice


def mark_overdue() -> int:
    """Flip PENDING invoices past their due date to OVERDUE and notify."""
    now = utcnow()
    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.payment_status == "PENDING", Invoice.due_date < now)
        .order_by(Invoice.id.asc())
        .all()
    )
    for invoice in invoices:
        invoice.payment_status = "OVERDUE"
        audit_service.record(
            action="UPDATE",
            table_name="invoices",
            record_id=invoice.id,
            old_values={"payment_status": "PENDING"},
            new_values={"payment_status": "OVERDUE"},
        )
    db.session.commit()

    for invoice in invoices:
        message = f"La facture {invoice.invoice_number} ({invoice.description}) est en retard de paiement."
        notification_service.notify_franchisee(
            invoice.franchise,
            type="INVOICE_OVERDUE",
            priority="HIGH",
            title="Facture en retard",
            message=message,
            related_entity_id=invoice.id,
            related_entity_type="invoice",
            action_url=f"/franchise/invoices/{invoice.id}",
            dedupe_key=f"invoice-overdue:{invoice.id}:franchisee",
        )
        notification_service.notify_admins(
            type="INVOICE_OVERDUE",
            priority="HIGH",
            title="Facture en retard",
            message=f"{invoice.franchise.business_name}: {message}",
            franchise_id=invoice.franchise_id,
            related_entity_id=invoice.id,
            related_entity_type="invoice",
            action_url=f"/admin/invoices/{invoice.id}",
            dedupe_key=f"invoice-overdue:{invoice.id}:admin",
        )
    return len(invoices)
