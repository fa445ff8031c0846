# Overview: Franchise registration, administration and document validation.

"""
Franchise service.

A franchise belongs to exactly one FRANCHISEE user. Registration creates
an inactive user and a PENDING franchise; document validation activates
both. Multi-row writes (user + franchise, cascading delete) commit once.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import (
    Franchise,
    Invoice,
    Notification,
    Order,
    ProcessedPaymentEvent,
    SalesReport,
    User,
    Vehicle,
)
from ..models.auth import ROLE_FRANCHISEE
from ..models.franchises import FRANCHISE_STATUSES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    POSTAL_CODE_RE,
    SIRET_RE,
    ValidationError,
    is_email,
    matches,
    min_length,
    money,
    one_of,
    validate_payload,
    value_between,
)
from . import audit_service, auth_service, notification_service, policy_service, session_service
from .pagination import PageParams, paginate
from drivncook.time_utils import utcnow, to_utc_z


_RULES = {
    "business_name": min_length(2),
    "siret_number": matches(SIRET_RE, "doit contenir exactement 14 chiffres"),
    "address": min_length(5),
    "city": min_length(2),
    "postal_code": matches(POSTAL_CODE_RE, "doit contenir 5 chiffres"),
    "region": min_length(2),
    "contact_email": is_email,
    "contact_phone": min_length(10),
    "personal_email": is_email,
    "status": one_of(FRANCHISE_STATUSES),
    "entry_fee_cents": money,
    "royalty_rate": value_between(0, 100),
}

_COMPANY_FIELDS = {
    "business_name", "siret_number", "vat_number", "address", "city",
    "postal_code", "region", "contact_email", "contact_phone",
    "personal_email", "driving_license",
}

REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields=_COMPANY_FIELDS,
    required_on_create={
        "business_name", "siret_number", "address", "city", "postal_code",
        "region", "contact_email", "contact_phone",
    },
    rules=_RULES,
)

ADMIN_FRANCHISE_POLICY = ModelValidationPolicy(
    writable_fields=_COMPANY_FIELDS | {
        "status", "entry_fee_cents", "entry_fee_paid", "royalty_rate",
        "contract_start_date", "contract_end_date",
        "kbis_document_url", "id_card_document_url",
    },
    required_on_create=REGISTRATION_POLICY.required_on_create,
    rules=_RULES,
)

# What a franchisee may change on their own franchise
OWN_FRANCHISE_POLICY = ModelValidationPolicy(
    writable_fields={
        "contact_email", "contact_phone", "personal_email",
        "kbis_document_url", "id_card_document_url",
    },
    rules=_RULES,
)

SORTABLE = {"created_at", "business_name", "city", "status", "region"}


def _normalize(payload: dict) -> dict:
    data = dict(payload or {})
    if isinstance(data.get("siret_number"), str):
        data["siret_number"] = "".join(data["siret_number"].split())
    if isinstance(data.get("contact_email"), str):
        data["contact_email"] = data["contact_email"].strip().lower()
    return data


def _check_unique(*, siret: str | None = None, contact_email: str | None = None, exclude_id: int | None = None) -> None:
    if siret:
        q = db.session.query(Franchise.id).filter(Franchise.siret_number == siret)
        if exclude_id:
            q = q.filter(Franchise.id != exclude_id)
        if q.first():
            raise ConflictError("Ce numéro SIRET est déjà enregistré")
    if contact_email:
        q = db.session.query(Franchise.id).filter(Franchise.contact_email == contact_email)
        if exclude_id:
            q = q.filter(Franchise.id != exclude_id)
        if q.first():
            raise ConflictError("Cet email de contact est déjà utilisé")


def _validate_personal(payload: dict, *, require_confirmation: bool) -> None:
    errors = []
    for name in ("email", "password", "first_name", "last_name"):
        if payload.get(name) in (None, ""):
            errors.append(f"{name}: champ requis")
    for name in ("first_name", "last_name"):
        value = payload.get(name)
        if isinstance(value, str) and value and len(value.strip()) < 2:
            errors.append(f"{name}: au moins 2 caractères")
    if payload.get("email") and is_email(auth_service.normalize_email(payload["email"])):
        errors.append("email: email invalide")
    if require_confirmation:
        if payload.get("password") != payload.get("confirm_password"):
            errors.append("confirm_password: les mots de passe ne correspondent pas")
        if payload.get("accept_terms") is not True:
            errors.append("accept_terms: les conditions doivent être acceptées")
    if errors:
        raise ValidationError(f"Données invalides: {', '.join(errors)}", errors)


def _stage_user(payload: dict, *, is_active: bool) -> User:
    try:
        user = auth_service.build_user(
            email=payload["email"],
            password=payload["password"],
            role=ROLE_FRANCHISEE,
            first_name=(payload.get("first_name") or "").strip() or None,
            last_name=(payload.get("last_name") or "").strip() or None,
            phone=payload.get("phone"),
            is_active=is_active,
        )
    except auth_service.PasswordValidationError as e:
        raise ValidationError(f"Données invalides: password: {e}", [f"password: {e}"])
    except ValueError as e:
        raise ConflictError(str(e))
    db.session.flush()
    return user


def _new_franchise(user: User, patch: dict, app_defaults: dict) -> Franchise:
    franchise = Franchise(
        user_id=user.id,
        entry_fee_cents=app_defaults["entry_fee_cents"],
        royalty_rate=app_defaults["royalty_rate"],
        status="PENDING",
    )
    for key, value in patch.items():
        setattr(franchise, key, value)
    db.session.add(franchise)
    db.session.flush()
    return franchise


def _defaults() -> dict:
    return {
        "entry_fee_cents": current_app.config.get("DEFAULT_ENTRY_FEE_CENTS", 5_000_000),
        "royalty_rate": current_app.config.get("DEFAULT_ROYALTY_RATE", 4.0),
    }


def register(payload: dict) -> Franchise:
    """
    Public self-registration: inactive FRANCHISEE user + PENDING franchise.
    """
    payload = _normalize(payload)
    _validate_personal(payload, require_confirmation=True)
    patch = validate_payload(model=Franchise, payload=payload, policy=REGISTRATION_POLICY, partial=False)
    _check_unique(siret=patch.get("siret_number"), contact_email=patch.get("contact_email"))

    user = _stage_user(payload, is_active=False)
    franchise = _new_franchise(user, patch, _defaults())
    audit_service.record(
        action="CREATE",
        table_name="franchises",
        record_id=franchise.id,
        user_id=user.id,
        new_values=audit_service.snapshot(franchise),
    )
    db.session.commit()

    notification_service.notify_admins(
        type="USER_CREATED",
        title="Nouvelle inscription franchisé",
        message=f"{user.full_name} a inscrit la franchise {franchise.business_name}. Documents à vérifier.",
        franchise_id=franchise.id,
        related_entity_id=franchise.id,
        related_entity_type="franchise",
        action_url=f"/admin/franchises/{franchise.id}",
    )
    return franchise


def create_franchise(actor: User, payload: dict) -> Franchise:
    """Admin creation of a franchisee account and its franchise (one transaction)."""
    payload = _normalize(payload)
    _validate_personal(payload, require_confirmation=False)
    patch = validate_payload(model=Franchise, payload=payload, policy=ADMIN_FRANCHISE_POLICY, partial=False)
    _check_unique(siret=patch.get("siret_number"))

    user = _stage_user(payload, is_active=True)
    franchise = _new_franchise(user, patch, _defaults())
    audit_service.record(
        action="CREATE",
        table_name="franchises",
        record_id=franchise.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(franchise),
    )
    db.session.commit()
    return franchise


def list_franchises(params: PageParams, *, search: str | None = None, status: str | None = None) -> dict:
    query = db.session.query(Franchise)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Franchise.business_name.ilike(like),
            Franchise.siret_number.ilike(like),
            Franchise.city.ilike(like),
            Franchise.contact_email.ilike(like),
        ))
    if status:
        query = query.filter(Franchise.status == status)
    return paginate(query, Franchise, params, sortable=SORTABLE)


def require_franchise(franchise_id: int) -> Franchise:
    franchise = db.session.get(Franchise, franchise_id)
    if franchise is None:
        raise NotFoundError("Franchise introuvable")
    return franchise


def get_franchise(actor: User, franchise_id: int) -> Franchise:
    franchise = require_franchise(franchise_id)
    policy_service.authorize(actor, "VIEW_FRANCHISES", franchise)
    return franchise


def update_franchise(actor: User, franchise_id: int, payload: dict) -> Franchise:
    franchise = require_franchise(franchise_id)
    if actor.is_admin:
        policy_service.authorize(actor, "MANAGE_FRANCHISES")
        policy = ADMIN_FRANCHISE_POLICY
    else:
        policy_service.authorize(actor, "UPDATE_OWN_FRANCHISE", franchise)
        policy = OWN_FRANCHISE_POLICY

    patch = validate_payload(model=Franchise, payload=_normalize(payload), policy=policy, partial=True)
    if "siret_number" in patch and patch["siret_number"] != franchise.siret_number:
        _check_unique(siret=patch["siret_number"], exclude_id=franchise.id)

    before = audit_service.snapshot(franchise)
    previous_status = franchise.status
    for key, value in patch.items():
        setattr(franchise, key, value)
    if patch.get("entry_fee_paid") and not franchise.entry_fee_date:
        franchise.entry_fee_date = utcnow()

    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="franchises",
        record_id=franchise.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(franchise),
    )
    db.session.commit()

    if franchise.status == "SUSPENDED" and previous_status != "SUSPENDED":
        notification_service.notify_franchisee(
            franchise,
            type="FRANCHISE_SUSPENDED",
            priority="HIGH",
            title="Franchise suspendue",
            message=f"Votre franchise {franchise.business_name} a été suspendue. Contactez l'administration.",
            related_entity_id=franchise.id,
            related_entity_type="franchise",
            action_url="/franchise/dashboard",
        )
    return franchise


def delete_franchise(actor: User, franchise_id: int) -> None:
    """
    Delete a franchise with its sales reports and invoices and deactivate
    its user. Refused while vehicles or orders reference it.
    """
    policy_service.authorize(actor, "DELETE_FRANCHISES")
    franchise = require_franchise(franchise_id)

    vehicle_count = db.session.query(Vehicle.id).filter(Vehicle.franchise_id == franchise.id).count()
    order_count = db.session.query(Order.id).filter(Order.franchise_id == franchise.id).count()
    if vehicle_count or order_count:
        raise BusinessRuleError(
            f"Impossible de supprimer la franchise: {vehicle_count} véhicule(s) et "
            f"{order_count} commande(s) associés"
        )

    before = audit_service.snapshot(franchise)
    user = franchise.user

    db.session.query(SalesReport).filter(SalesReport.franchise_id == franchise.id).delete(synchronize_session=False)
    db.session.query(Invoice).filter(Invoice.franchise_id == franchise.id).delete(synchronize_session=False)
    db.session.query(Notification).filter(Notification.franchise_id == franchise.id).update(
        {Notification.franchise_id: None}, synchronize_session=False
    )
    db.session.query(ProcessedPaymentEvent).filter(ProcessedPaymentEvent.franchise_id == franchise.id).update(
        {ProcessedPaymentEvent.franchise_id: None}, synchronize_session=False
    )
    db.session.delete(franchise)
    if user is not None:
        user.is_active = False
        session_service.revoke_all_user_sessions(user.id, "Franchise deleted", commit=False)

    audit_service.record(
        action="DELETE",
        table_name="franchises",
        record_id=franchise_id,
        user_id=actor.id,
        old_values=before,
    )
    db.session.commit()


def validate_documents(actor: User, franchise_id: int) -> dict:
    """
    Check the required documents and activate a PENDING franchise.

    Missing documents leave everything unchanged.
    """
    policy_service.authorize(actor, "VALIDATE_FRANCHISE_DOCUMENTS")
    franchise = require_franchise(franchise_id)

    missing = franchise.missing_documents()
    if missing:
        raise BusinessRuleError(
            f"Documents manquants: {', '.join(missing)}. "
            "Tous les documents doivent être présents avant validation."
        )

    before = audit_service.snapshot(franchise)
    status_updated = franchise.status == "PENDING"
    if status_updated:
        franchise.status = "ACTIVE"
    if franchise.user is not None:
        franchise.user.is_active = True

    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="franchises",
        record_id=franchise.id,
        user_id=actor.id,
        old_values=before,
        new_values={"documents_validated": True, "status": franchise.status},
    )
    db.session.commit()
    validation_date = utcnow()

    notification_service.notify_franchisee(
        franchise,
        type="FRANCHISE_APPROVED",
        priority="HIGH",
        title="Documents validés",
        message=(
            f"Les documents de {franchise.business_name} ont été validés."
            + (" Votre franchise est désormais active." if status_updated else "")
        ),
        related_entity_id=franchise.id,
        related_entity_type="franchise",
        action_url="/franchise/dashboard",
    )
    if status_updated:
        notification_service.notify_admins(
            type="FRANCHISE_APPROVED",
            title="Franchise activée",
            message=f"La franchise {franchise.business_name} est maintenant active.",
            franchise_id=franchise.id,
            related_entity_id=franchise.id,
            related_entity_type="franchise",
            action_url=f"/admin/franchises/{franchise.id}",
        )

    return {
        "status_updated": status_updated,
        "new_status": franchise.status,
        "documents_validated": True,
        "recipient_email": franchise.user.email if franchise.user else None,
        "validation_date": to_utc_z(validation_date),
    }


def request_documents(
    actor: User,
    franchise_id: int,
    *,
    missing_documents: list[str] | None = None,
    custom_message: str | None = None,
) -> dict:
    """
    Ask the franchisee for missing documents by notification and email.

    The email is the operation itself: MailDeliveryError propagates when it
    could not be delivered.
    """
    policy_service.authorize(actor, "VALIDATE_FRANCHISE_DOCUMENTS")
    franchise = require_franchise(franchise_id)

    if missing_documents is not None and (
        not isinstance(missing_documents, list) or not all(isinstance(d, str) for d in missing_documents)
    ):
        raise ValidationError("Données invalides: missing_documents: doit être une liste de chaînes")
    documents = [d.strip() for d in (missing_documents or []) if d and d.strip()] or franchise.missing_documents()
    if not documents:
        raise BusinessRuleError("Aucun document manquant détecté")

    message = f"Merci de transmettre les documents suivants: {', '.join(documents)}."
    if custom_message:
        message += f"\n\n{custom_message.strip()}"

    notification = notification_service.notify_franchisee(
        franchise,
        type="FRANCHISE_DOCUMENTS_REQUIRED",
        priority="HIGH",
        title="Documents requis",
        message=message,
        data={"missing_documents": documents},
        related_entity_id=franchise.id,
        related_entity_type="franchise",
        action_url="/franchise/documents",
        send_email=False,
    )
    if notification is None:
        raise BusinessRuleError("La notification n'a pas pu être enregistrée")

    recipient = franchise.user.email if franchise.user else franchise.contact_email
    notification_service.send_now(notification, [recipient])
    return {"missing_documents": documents, "recipient_email": recipient}
