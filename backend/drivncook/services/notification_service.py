# Overview: In-app notifications and their email fan-out.

"""
Notification dispatch.

dispatch() persists one Notification row and emails the resolved
recipients. It runs after the triggering operation has committed and
never raises: failures are logged and recorded as NotificationDelivery
rows with status FAILED, which `flask notifications retry-failed`
replays later.
"""

from __future__ import annotations

from html import escape

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError
from ..extensions import db
from ..models import Franchise, Notification, NotificationDelivery, User
from ..models.auth import ADMIN_ROLES, ROLE_ADMIN, ROLE_FRANCHISEE
from ..validation import ValidationError
from . import mail_service
from .pagination import PageParams, paginate
from drivncook.time_utils import utcnow


NOTIFICATION_TYPES = {
    "SYSTEM",
    "ORDER_CREATED",
    "ORDER_CONFIRMED",
    "ORDER_SHIPPED",
    "ORDER_DELIVERED",
    "ORDER_CANCELLED",
    "ORDER_OVERDUE",
    "VEHICLE_ASSIGNED",
    "VEHICLE_MAINTENANCE_DUE",
    "VEHICLE_BREAKDOWN",
    "INVOICE_GENERATED",
    "INVOICE_OVERDUE",
    "PAYMENT_RECEIVED",
    "PAYMENT_FAILED",
    "ROYALTY_PROCESSED",
    "FRANCHISE_APPROVED",
    "FRANCHISE_SUSPENDED",
    "FRANCHISE_DOCUMENTS_REQUIRED",
    "STOCK_LOW",
    "STOCK_RECEIVED",
    "USER_CREATED",
    "USER_PROFILE_UPDATED",
    "PASSWORD_CHANGED",
    "REPORT_GENERATED",
    "SALES_TARGET_REACHED",
    "SALES_TARGET_MISSED",
    "DOCUMENT_TRANSMITTED",
}
PRIORITIES = {"LOW", "MEDIUM", "HIGH", "URGENT"}
NOTIFICATION_STATUSES = {"UNREAD", "READ", "ARCHIVED"}

# Types that stay in-app only
EMAIL_DISABLED_TYPES = {"STOCK_RECEIVED", "USER_PROFILE_UPDATED"}

# ADMIN-targeted types that are emailed to every active admin account
ADMIN_BROADCAST_TYPES = {
    "ORDER_CREATED",
    "ORDER_OVERDUE",
    "VEHICLE_BREAKDOWN",
    "VEHICLE_MAINTENANCE_DUE",
    "INVOICE_OVERDUE",
    "PAYMENT_FAILED",
    "DOCUMENT_TRANSMITTED",
    "STOCK_LOW",
}

BRAND = "DRIV'N COOK"


def active_admin_emails() -> list[str]:
    rows = (
        db.session.query(User.email)
        .filter(User.role.in_(ADMIN_ROLES), User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )
    return [r[0] for r in rows if r[0]]


def _unique(addresses) -> list[str]:
    seen = set()
    result = []
    for address in addresses:
        key = (address or "").strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(address.strip())
    return result


def resolve_recipients(
    *,
    type: str,
    target_user: User | None,
    target_role: str | None,
    explicit: list[str] | None = None,
) -> list[str]:
    recipients = list(explicit or [])
    if target_user is not None:
        recipients.append(target_user.email)
    if target_role == ROLE_ADMIN:
        admin_email = current_app.config.get("ADMIN_EMAIL")
        if admin_email:
            recipients.append(admin_email)
        if type in ADMIN_BROADCAST_TYPES:
            recipients.extend(active_admin_emails())
    return _unique(recipients)


def render_email(notification: Notification) -> tuple[str, str, str]:
    """(subject, text, html) for a notification."""
    subject = f"{notification.title} - {BRAND}"
    link = None
    if notification.action_url:
        link = current_app.config.get("APP_BASE_URL", "").rstrip("/") + notification.action_url

    text = notification.message
    if link:
        text += f"\n\nVoir le détail: {link}"
    text += f"\n\n-- \n{BRAND}"

    cta = ""
    if link:
        cta = (
            f'<p><a href="{escape(link)}" style="background:#F24236;color:#fff;'
            f'padding:10px 16px;border-radius:6px;text-decoration:none">Voir le détail</a></p>'
        )
    html = (
        f"<div style=\"font-family:Arial,sans-serif;color:#111\">"
        f"<h2 style=\"margin:0 0 12px\">{escape(notification.title)}</h2>"
        f"<p>{escape(notification.message)}</p>{cta}"
        f"<p style=\"color:#6b7280;font-size:12px\">{BRAND}</p></div>"
    )
    return subject, text, html


def _send_one(notification: Notification, recipient: str) -> tuple[str, str | None]:
    subject, text, html = render_email(notification)
    try:
        sent = mail_service.send_email([recipient], subject, text, html)
    except Exception as e:
        current_app.logger.warning(
            "Notification %s email to %s failed: %s", notification.id, recipient, e
        )
        return "FAILED", str(e)
    return ("SENT" if sent else "SKIPPED"), None


def _deliver(notification: Notification, recipients: list[str]) -> list[str]:
    now = utcnow()
    statuses = []
    for recipient in recipients:
        status, error = _send_one(notification, recipient)
        db.session.add(NotificationDelivery(
            notification_id=notification.id,
            recipient=recipient,
            status=status,
            attempts=1,
            last_error=error,
            sent_at=now if status == "SENT" else None,
        ))
        statuses.append(status)
    db.session.commit()
    return statuses


def _enrich(data: dict | None, franchise: Franchise | None, user: User | None) -> dict:
    enriched = dict(data or {})
    if franchise is not None:
        enriched.setdefault("franchise_name", franchise.business_name)
    if user is not None:
        enriched.setdefault("user_name", user.full_name)
    return enriched


def dispatch(
    *,
    type: str,
    title: str,
    message: str,
    priority: str = "MEDIUM",
    data: dict | None = None,
    target_user_id: int | None = None,
    target_role: str | None = None,
    franchise_id: int | None = None,
    related_entity_id: int | None = None,
    related_entity_type: str | None = None,
    action_url: str | None = None,
    email_recipients: list[str] | None = None,
    send_email: bool | None = None,
    dedupe_key: str | None = None,
) -> Notification | None:
    """
    Persist a notification and email it. Never raises.

    Returns the notification (the existing one when dedupe_key was already
    used), or None when it could not be stored.
    """
    try:
        return _dispatch(
            type=type, title=title, message=message, priority=priority, data=data,
            target_user_id=target_user_id, target_role=target_role, franchise_id=franchise_id,
            related_entity_id=related_entity_id, related_entity_type=related_entity_type,
            action_url=action_url, email_recipients=email_recipients, send_email=send_email,
            dedupe_key=dedupe_key,
        )
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Notification %s (%s) could not be dispatched", type, title, exc_info=True)
        return None


def _dispatch(*, type, title, message, priority, data, target_user_id, target_role, franchise_id,
              related_entity_id, related_entity_type, action_url, email_recipients, send_email,
              dedupe_key) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    if priority not in PRIORITIES:
        priority = "MEDIUM"

    if dedupe_key:
        existing = db.session.query(Notification).filter_by(dedupe_key=dedupe_key).first()
        if existing:
            return existing

    franchise = db.session.get(Franchise, franchise_id) if franchise_id else None
    target_user = db.session.get(User, target_user_id) if target_user_id else None
    if target_user is None and target_role == ROLE_FRANCHISEE and franchise is not None:
        target_user = franchise.user

    notification = Notification(
        type=type,
        priority=priority,
        status="UNREAD",
        title=title,
        message=message,
        data=_enrich(data, franchise, target_user),
        target_user_id=target_user.id if target_user else None,
        target_role=target_role,
        franchise_id=franchise.id if franchise else None,
        related_entity_id=related_entity_id,
        related_entity_type=related_entity_type,
        action_url=action_url,
        dedupe_key=dedupe_key,
    )
    db.session.add(notification)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.query(Notification).filter_by(dedupe_key=dedupe_key).first()
        if existing is None:
            raise
        return existing

    should_email = send_email if send_email is not None else type not in EMAIL_DISABLED_TYPES
    if should_email:
        recipients = resolve_recipients(
            type=type,
            target_user=target_user,
            target_role=target_role,
            explicit=email_recipients,
        )
        if recipients:
            _deliver(notification, recipients)

    return notification


def send_now(notification: Notification, recipients: list[str]) -> int:
    """
    Email a stored notification when the email is the operation itself.

    Deliveries are recorded like dispatch() does; raises MailDeliveryError
    when no recipient could be reached. Returns the number of SENT
    deliveries (0 when mail is disabled).
    """
    recipients = _unique(recipients)
    if not recipients:
        raise mail_service.MailDeliveryError("Aucun destinataire")
    statuses = _deliver(notification, recipients)
    if statuses and all(s == "FAILED" for s in statuses):
        raise mail_service.MailDeliveryError("L'email n'a pas pu être envoyé")
    return statuses.count("SENT")


def notify_franchisee(franchise: Franchise, **kwargs) -> Notification | None:
    return dispatch(
        target_user_id=franchise.user_id,
        target_role=ROLE_FRANCHISEE,
        franchise_id=franchise.id,
        **kwargs,
    )


def notify_admins(**kwargs) -> Notification | None:
    return dispatch(target_role=ROLE_ADMIN, **kwargs)


def retry_failed(limit: int = 100) -> dict:
    """Re-send FAILED deliveries (oldest first)."""
    deliveries = (
        db.session.query(NotificationDelivery)
        .filter(NotificationDelivery.status == "FAILED")
        .order_by(NotificationDelivery.id.asc())
        .limit(limit)
        .all()
    )
    counts = {"retried": 0, "sent": 0, "failed": 0}
    for delivery in deliveries:
        status, error = _send_one(delivery.notification, delivery.recipient)
        delivery.attempts += 1
        delivery.status = status
        delivery.last_error = error
        if status == "SENT":
            delivery.sent_at = utcnow()
            counts["sent"] += 1
        elif status == "FAILED":
            counts["failed"] += 1
        counts["retried"] += 1
    db.session.commit()
    return counts


# -- inbox ------------------------------------------------------------------

def _visible_to(user: User):
    if user.role in ADMIN_ROLES:
        role_clause = Notification.target_role == ROLE_ADMIN
    else:
        role_clause = and_(
            Notification.target_role == ROLE_FRANCHISEE,
            Notification.franchise_id == user.franchise_id,
        )
    now = utcnow()
    return and_(
        or_(Notification.target_user_id == user.id, role_clause),
        or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


def _filtered(query, *, status: str | None, type: str | None):
    if status:
        if status not in NOTIFICATION_STATUSES:
            raise ValidationError("Données invalides: status: valeur invalide")
        query = query.filter(Notification.status == status)
    if type:
        query = query.filter(Notification.type == type)
    return query


def list_for_user(user: User, params: PageParams, *, status: str | None = None, type: str | None = None) -> dict:
    base = db.session.query(Notification).filter(_visible_to(user))
    result = paginate(_filtered(base, status=status, type=type), Notification, params,
                      sortable={"created_at", "priority", "type", "status"})
    result["unread_count"] = base.filter(Notification.status == "UNREAD").count()
    return result


def list_admin(params: PageParams, *, status: str | None = None, type: str | None = None) -> dict:
    base = db.session.query(Notification).filter(Notification.target_role == ROLE_ADMIN)
    result = paginate(_filtered(base, status=status, type=type), Notification, params,
                      sortable={"created_at", "priority", "type", "status"})
    result["unread_count"] = base.filter(Notification.status == "UNREAD").count()
    return result


def update_status(user: User, notification_id: int, status: str | None) -> Notification:
    if status not in NOTIFICATION_STATUSES:
        raise ValidationError("Données invalides: status: valeur invalide (attendu: ARCHIVED, READ, UNREAD)")
    notification = (
        db.session.query(Notification)
        .filter(Notification.id == notification_id, _visible_to(user))
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification introuvable")

    notification.status = status
    notification.read_at = utcnow() if status == "READ" else (notification.read_at if status == "ARCHIVED" else None)
    db.session.commit()
    return notification


def mark_all_read(user: User) -> int:
    rows = (
        db.session.query(Notification)
        .filter(_visible_to(user), Notification.status == "UNREAD")
        .all()
    )
    now = utcnow()
    for notification in rows:
        notification.status = "READ"
        notification.read_at = now
    db.session.commit()
    return len(rows)
