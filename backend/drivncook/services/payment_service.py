# Overview: Stripe payment flows for the entry fee and for orders, with reconciliation.

"""
Payment Reconciliation Service

Two flows, each with a client-side confirmation endpoint and a webhook:
- ENTRY_FEE: marks the franchise fee paid
- ORDER: marks the order PAID and its invoice PAID

Both completion paths may report the same payment. The mutation is
idempotent, and a ProcessedPaymentEvent row keyed by the payment intent id
(or checkout session id when no intent is known) makes the notifications
run once.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Franchise, Invoice, Order, ProcessedPaymentEvent, User
from ..validation import ValidationError, parse_int
from . import audit_service, invoice_service, notification_service, payment_gateway, policy_service
from drivncook.time_utils import utcnow


# =============================================================================
# CONSTANTS
# =============================================================================

PURPOSE_ENTRY_FEE = "ENTRY_FEE"
PURPOSE_ORDER = "ORDER"

SOURCE_CONFIRM = "CONFIRM"
SOURCE_WEBHOOK = "WEBHOOK"

COMPLETION_EVENTS = {"checkout.session.completed", "payment_intent.succeeded"}
FAILURE_EVENT = "payment_intent.payment_failed"


def _base_url() -> str:
    return current_app.config.get("APP_BASE_URL", "").rstrip("/")


def _claim(key: str, *, purpose: str, source: str, franchise_id: int | None, order_id: int | None = None) -> bool:
    """Stage the processed-event row; False when this payment was already handled."""
    if db.session.query(ProcessedPaymentEvent.id).filter_by(key=key).first():
        return False
    db.session.add(ProcessedPaymentEvent(
        key=key,
        purpose=purpose,
        source=source,
        franchise_id=franchise_id,
        order_id=order_id,
    ))
    return True


def _commit_claimed(claimed: bool) -> bool:
    """Commit; a concurrent claim of the same key means the other path won."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    return claimed


# =============================================================================
# ENTRY FEE
# =============================================================================

def _caller_franchise(actor: User) -> Franchise:
    if actor.franchise_id is None:
        raise BusinessRuleError("Utilisateur non associé à une franchise")
    franchise = db.session.get(Franchise, actor.franchise_id)
    if franchise is None:
        raise NotFoundError("Franchise introuvable")
    return franchise


def _entry_fee_preconditions(actor: User, payload: dict) -> tuple[Franchise, int]:
    policy_service.authorize(actor, "PAY_ENTRY_FEE")
    franchise = _caller_franchise(actor)
    if franchise.entry_fee_paid:
        raise BusinessRuleError("Droit d'entrée déjà réglé")

    amount = (payload or {}).get("amount_in_cents")
    amount = parse_int(amount, "amount_in_cents") if amount not in (None, "") else franchise.entry_fee_cents
    if amount <= 0:
        raise ValidationError("Données invalides: amount_in_cents: doit être > 0")
    return franchise, amount


def _entry_fee_metadata(actor: User, franchise: Franchise) -> dict:
    return {"franchise_id": franchise.id, "user_id": actor.id, "purpose": PURPOSE_ENTRY_FEE}


def start_entry_fee_checkout(actor: User, payload: dict) -> dict:
    franchise, amount = _entry_fee_preconditions(actor, payload)
    session = payment_gateway.create_checkout_session(
        amount_cents=amount,
        product_name=f"Droit d'entrée - {franchise.business_name}",
        metadata=_entry_fee_metadata(actor, franchise),
        success_url=f"{_base_url()}/franchise/payments/entry-fee?status=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{_base_url()}/franchise/payments/entry-fee?status=cancelled",
        customer_email=actor.email,
    )
    current_app.logger.info("Entry fee checkout %s started for franchise %s", session["id"], franchise.id)
    return {"url": session["url"], "session_id": session["id"]}


def create_entry_fee_intent(actor: User, payload: dict) -> dict:
    franchise, amount = _entry_fee_preconditions(actor, payload)
    intent = payment_gateway.create_payment_intent(
        amount_cents=amount,
        metadata=_entry_fee_metadata(actor, franchise),
        description=f"Droit d'entrée - {franchise.business_name}",
    )
    return {"client_secret": intent["client_secret"], "payment_intent_id": intent["id"]}


def apply_entry_fee_payment(franchise_id: int, *, key: str, source: str) -> Franchise:
    """
    Mark the entry fee paid and activate the franchise and its owner.

    Idempotent: a replayed payment key changes nothing and notifies once.
    """
    franchise = db.session.get(Franchise, franchise_id)
    if franchise is None:
        raise NotFoundError("Franchise introuvable")

    changed = False
    if not franchise.entry_fee_paid:
        franchise.entry_fee_paid = True
        franchise.entry_fee_date = utcnow()
        changed = True
    if franchise.status != "ACTIVE":
        franchise.status = "ACTIVE"
        changed = True
    if franchise.user is not None and not franchise.user.is_active:
        franchise.user.is_active = True
        changed = True

    claimed = _claim(key, purpose=PURPOSE_ENTRY_FEE, source=source, franchise_id=franchise.id)
    if changed:
        db.session.flush()
        audit_service.record(
            action="UPDATE",
            table_name="franchises",
            record_id=franchise.id,
            new_values={
                "entry_fee_paid": True,
                "status": franchise.status,
                "payment_key": key,
                "source": source,
            },
        )
    first = _commit_claimed(claimed)
    franchise = db.session.get(Franchise, franchise_id)

    if first:
        current_app.logger.info("Entry fee of franchise %s paid (%s, %s)", franchise.id, key, source)
        amount = f"{franchise.entry_fee_cents / 100:.2f} EUR"
        notification_service.notify_franchisee(
            franchise,
            type="PAYMENT_RECEIVED",
            title="Droit d'entrée réglé",
            message=f"Nous avons bien reçu le paiement de votre droit d'entrée ({amount}).",
            related_entity_id=franchise.id,
            related_entity_type="franchise",
            action_url="/franchise/dashboard",
            dedupe_key=f"payment:{key}:franchisee",
        )
        notification_service.notify_admins(
            type="PAYMENT_RECEIVED",
            title="Droit d'entrée reçu",
            message=f"{franchise.business_name} a réglé son droit d'entrée ({amount}).",
            franchise_id=franchise.id,
            related_entity_id=franchise.id,
            related_entity_type="franchise",
            action_url=f"/admin/franchises/{franchise.id}",
            dedupe_key=f"payment:{key}:admin",
        )
    return franchise


def confirm_entry_fee(actor: User, payload: dict) -> Franchise:
    payload = payload or {}
    intent_id = payload.get("payment_intent_id")
    if not intent_id:
        raise ValidationError("Données invalides: payment_intent_id: champ requis")
    policy_service.authorize(actor, "PAY_ENTRY_FEE")
    franchise = _caller_franchise(actor)

    intent = payment_gateway.retrieve_payment_intent(intent_id)
    metadata = intent.get("metadata") or {}
    if (
        intent.get("status") != "succeeded"
        or metadata.get("purpose") != PURPOSE_ENTRY_FEE
        or str(metadata.get("franchise_id")) != str(franchise.id)
    ):
        raise BusinessRuleError("Paiement non confirmé")

    return apply_entry_fee_payment(franchise.id, key=intent["id"], source=SOURCE_CONFIRM)


# =============================================================================
# ORDERS
# =============================================================================

def _order_for_payment(actor: User, payload: dict) -> Order:
    payload = payload or {}
    if payload.get("order_id") in (None, ""):
        raise ValidationError("Données invalides: order_id: champ requis")
    order = db.session.get(Order, parse_int(payload["order_id"], "order_id"))
    if order is None:
        raise NotFoundError("Commande introuvable")
    policy_service.authorize(actor, "PAY_ORDERS", order)
    if order.status == "PAID":
        raise BusinessRuleError("Commande déjà payée")
    if (order.total_amount_cents or 0) <= 0:
        raise BusinessRuleError("Le montant de la commande doit être supérieur à 0")
    return order


def _order_metadata(actor: User, order: Order, invoice: Invoice) -> dict:
    return {
        "purpose": PURPOSE_ORDER,
        "order_id": order.id,
        "invoice_id": invoice.id,
        "franchise_id": order.franchise_id,
        "user_id": actor.id,
    }


def create_order_intent(actor: User, payload: dict) -> dict:
    order = _order_for_payment(actor, payload)
    invoice = invoice_service.find_or_create_order_invoice(order)
    intent = payment_gateway.create_payment_intent(
        amount_cents=order.total_amount_cents,
        metadata=_order_metadata(actor, order, invoice),
        description=f"Commande {order.order_number}",
    )
    return {
        "client_secret": intent["client_secret"],
        "payment_intent_id": intent["id"],
        "invoice_id": invoice.id,
    }


def start_order_checkout(actor: User, payload: dict) -> dict:
    order = _order_for_payment(actor, payload)
    invoice = invoice_service.find_or_create_order_invoice(order)
    session = payment_gateway.create_checkout_session(
        amount_cents=order.total_amount_cents,
        product_name=f"Commande {order.order_number}",
        metadata=_order_metadata(actor, order, invoice),
        success_url=f"{_base_url()}/franchise/orders/{order.id}?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{_base_url()}/franchise/orders/{order.id}?payment=cancelled",
        customer_email=actor.email,
    )
    return {"url": session["url"], "session_id": session["id"], "invoice_id": invoice.id}


def apply_order_payment(order_id: int, invoice_id: int | None, *, key: str, source: str) -> Order:
    """Mark the order and its invoice PAID. Idempotent."""
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Commande introuvable")

    invoice = db.session.get(Invoice, invoice_id) if invoice_id else None
    if invoice is None:
        invoice = (
            db.session.query(Invoice)
            .filter(Invoice.franchise_id == order.franchise_id,
                    Invoice.description == f"Commande {order.order_number}")
            .first()
        )

    changed = order.status != "PAID"
    order.status = "PAID"
    if invoice is not None and invoice.payment_status != "PAID":
        invoice.payment_status = "PAID"
        invoice.paid_date = utcnow()
        changed = True

    claimed = _claim(key, purpose=PURPOSE_ORDER, source=source, franchise_id=order.franchise_id, order_id=order.id)
    if changed:
        db.session.flush()
        audit_service.record(
            action="UPDATE",
            table_name="orders",
            record_id=order.id,
            new_values={
                "status": "PAID",
                "invoice_id": invoice.id if invoice else None,
                "payment_key": key,
                "source": source,
            },
        )
    first = _commit_claimed(claimed)
    order = db.session.get(Order, order_id)

    if first:
        current_app.logger.info("Order %s paid (%s, %s)", order.order_number, key, source)
        amount = f"{order.total_amount_cents / 100:.2f} EUR"
        common = dict(
            type="PAYMENT_RECEIVED",
            related_entity_id=order.id,
            related_entity_type="order",
            data={"order_number": order.order_number, "amount_cents": order.total_amount_cents},
        )
        notification_service.notify_franchisee(
            order.franchise,
            title="Paiement reçu",
            message=f"Le paiement de la commande {order.order_number} ({amount}) a été reçu.",
            action_url=f"/franchise/orders/{order.id}",
            dedupe_key=f"payment:{key}:franchisee",
            **common,
        )
        notification_service.notify_admins(
            title="Paiement de commande reçu",
            message=f"{order.franchise.business_name} a payé la commande {order.order_number} ({amount}).",
            franchise_id=order.franchise_id,
            action_url=f"/admin/orders/{order.id}",
            dedupe_key=f"payment:{key}:admin",
            **common,
        )
    return order


def confirm_order_payment(actor: User, payload: dict) -> dict:
    payload = payload or {}
    intent_id = payload.get("payment_intent_id")
    if not intent_id:
        raise ValidationError("Données invalides: payment_intent_id: champ requis")
    policy_service.authorize(actor, "PAY_ORDERS")

    intent = payment_gateway.retrieve_payment_intent(intent_id)
    metadata = intent.get("metadata") or {}
    if intent.get("status") != "succeeded" or metadata.get("purpose") != PURPOSE_ORDER:
        raise BusinessRuleError("Paiement non confirmé")

    order = db.session.get(Order, parse_int(metadata.get("order_id"), "order_id"))
    if order is None:
        raise NotFoundError("Commande introuvable")
    policy_service.authorize(actor, "PAY_ORDERS", order)

    invoice_id = metadata.get("invoice_id")
    invoice_id = parse_int(invoice_id, "invoice_id") if invoice_id else None
    order = apply_order_payment(order.id, invoice_id, key=intent["id"], source=SOURCE_CONFIRM)
    invoice = db.session.get(Invoice, invoice_id) if invoice_id else None
    return {"order_id": order.id, "invoice_id": invoice.id if invoice else None}


# =============================================================================
# WEBHOOKS
# =============================================================================

def _payment_key(event_type: str, obj: dict) -> str:
    # A checkout session and its payment intent describe the same payment
    if event_type == "checkout.session.completed":
        return obj.get("payment_intent") or obj["id"]
    return obj["id"]


def process_webhook_event(event: dict, *, purpose: str) -> bool:
    """
    Apply a verified Stripe event. Returns True when it was handled.

    Events for the other flow, or of other types, are ignored.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    if metadata.get("purpose") != purpose:
        return False

    if event_type == FAILURE_EVENT:
        _notify_failure(obj, metadata, purpose)
        return True

    if event_type not in COMPLETION_EVENTS:
        return False
    if event_type == "checkout.session.completed" and obj.get("payment_status") not in (None, "paid"):
        return False

    key = _payment_key(event_type, obj)
    if purpose == PURPOSE_ENTRY_FEE:
        apply_entry_fee_payment(int(metadata["franchise_id"]), key=key, source=SOURCE_WEBHOOK)
    else:
        invoice_id = metadata.get("invoice_id")
        apply_order_payment(
            int(metadata["order_id"]),
            int(invoice_id) if invoice_id else None,
            key=key,
            source=SOURCE_WEBHOOK,
        )
    return True


def _notify_failure(obj: dict, metadata: dict, purpose: str) -> None:
    franchise_id = metadata.get("franchise_id")
    franchise = db.session.get(Franchise, int(franchise_id)) if franchise_id else None
    error = (obj.get("last_payment_error") or {}).get("message") or "Paiement refusé"
    label = "du droit d'entrée" if purpose == PURPOSE_ENTRY_FEE else "de la commande"
    if franchise is not None:
        notification_service.notify_franchisee(
            franchise,
            type="PAYMENT_FAILED",
            priority="HIGH",
            title="Échec du paiement",
            message=f"Le paiement {label} a échoué: {error}",
            dedupe_key=f"payment-failed:{obj.get('id')}:franchisee",
        )
    notification_service.notify_admins(
        type="PAYMENT_FAILED",
        priority="HIGH",
        title="Échec de paiement",
        message=f"Échec du paiement {label}"
                + (f" pour {franchise.business_name}" if franchise else "") + f": {error}",
        franchise_id=franchise.id if franchise else None,
        dedupe_key=f"payment-failed:{obj.get('id')}:admin",
    )
