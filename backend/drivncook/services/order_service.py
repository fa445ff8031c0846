# Overview: Order lifecycle and order items with stock reservation.

from __future__ import annotations

from html import escape

from flask import current_app
from sqlalchemy import or_

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Franchise, Order, OrderItem, Product, User, Warehouse
from ..models.orders import OPEN_ORDER_STATUSES, ORDER_STATUSES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    min_value,
    money,
    one_of,
    parse_int,
    require_fields,
    validate_payload,
)
from . import audit_service, mail_service, notification_service, pdf_service, policy_service, sequence_service
from . import stock_service
from .concurrency import run_with_retry
from .pagination import PageParams, paginate

"""
Order invariants

- order_number is CMD-{year}-{seq:06d}, allocated from the ORDER sequence.
- total_amount_cents == sum(item.total_price_cents), recomputed in the same
  transaction as every item mutation.
- Items can be added or removed, and the order deleted, only while the
  order is DRAFT or PENDING. Deleting releases the items' reservations.
"""

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"requested_delivery_date", "notes", "is_from_drivn_cook"},
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "requested_delivery_date", "actual_delivery_date", "notes"},
    rules={"status": one_of(ORDER_STATUSES)},
)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "unit_price_cents", "notes"},
    required_on_create={"quantity"},
    rules={"quantity": min_value(1), "unit_price_cents": money},
)

# new status -> (notification type, title)
STATUS_NOTIFICATIONS = {
    "CONFIRMED": ("ORDER_CONFIRMED", "Commande confirmée"),
    "SHIPPED": ("ORDER_SHIPPED", "Commande expédiée"),
    "DELIVERED": ("ORDER_DELIVERED", "Commande livrée"),
    "CANCELLED": ("ORDER_CANCELLED", "Commande annulée"),
}
DEFAULT_STATUS_NOTIFICATION = ("SYSTEM", "Statut de commande mis à jour")

SORTABLE = {"created_at", "order_date", "order_number", "status", "total_amount_cents", "requested_delivery_date"}


def require_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Commande introuvable")
    return order


def _require_open(order: Order) -> None:
    if order.status not in OPEN_ORDER_STATUSES:
        raise BusinessRuleError(
            f"La commande {order.order_number} est {order.status}: seules les commandes "
            "en brouillon ou en attente peuvent être modifiées"
        )


def recompute_total(order: Order) -> int:
    order.total_amount_cents = sum(item.total_price_cents for item in order.items)
    return order.total_amount_cents


def _resolve_franchise(actor: User, payload: dict) -> Franchise:
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
    return franchise


def create_order(actor: User, payload: dict) -> Order:
    policy_service.authorize(actor, "CREATE_ORDERS")
    payload = payload or {}
    franchise = _resolve_franchise(actor, payload)
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=True)

    order_number = sequence_service.next_document_number("ORDER")
    order = Order(
        order_number=order_number,
        franchise_id=franchise.id,
        status="PENDING",
        total_amount_cents=0,
        created_by_id=actor.id,
        updated_by_id=actor.id,
        **patch,
    )
    db.session.add(order)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="orders",
        record_id=order.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(order),
    )
    db.session.commit()
    current_app.logger.info("Order %s created for franchise %s", order.order_number, franchise.id)

    notification_service.notify_admins(
        type="ORDER_CREATED",
        title="Nouvelle commande",
        message=f"{franchise.business_name} a créé la commande {order.order_number}.",
        franchise_id=franchise.id,
        related_entity_id=order.id,
        related_entity_type="order",
        action_url=f"/admin/orders/{order.id}",
    )
    return order


def list_orders(
    actor: User,
    params: PageParams,
    *,
    status: str | None = None,
    search: str | None = None,
    franchise_id: int | None = None,
) -> dict:
    query = db.session.query(Order).join(Franchise, Order.franchise_id == Franchise.id)
    scope = policy_service.franchise_scope(actor)
    if scope is not None:
        query = query.filter(Order.franchise_id == scope)
    elif franchise_id is not None:
        query = query.filter(Order.franchise_id == franchise_id)
    if status:
        query = query.filter(Order.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Order.order_number.ilike(like), Franchise.business_name.ilike(like)))
    return paginate(query, Order, params, sortable=SORTABLE)


def get_order(actor: User, order_id: int) -> Order:
    order = require_order(order_id)
    policy_service.authorize(actor, "VIEW_ORDERS", order)
    return order


def _notify_status_change(order: Order) -> None:
    notif_type, title = STATUS_NOTIFICATIONS.get(order.status, DEFAULT_STATUS_NOTIFICATION)
    message = f"La commande {order.order_number} est maintenant {order.status}."
    common = dict(
        type=notif_type,
        title=title,
        message=message,
        data={"order_number": order.order_number, "status": order.status},
        related_entity_id=order.id,
        related_entity_type="order",
    )
    notification_service.notify_franchisee(order.franchise, action_url=f"/franchise/orders/{order.id}", **common)
    notification_service.notify_admins(franchise_id=order.franchise_id, action_url=f"/admin/orders/{order.id}", **common)


def update_order(actor: User, order_id: int, payload: dict) -> Order:
    order = require_order(order_id)
    policy_service.authorize(actor, "UPDATE_ORDERS", order)
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_UPDATE_POLICY, partial=True)

    before = audit_service.snapshot(order)
    previous_status = order.status
    for key, value in patch.items():
        setattr(order, key, value)
    order.updated_by_id = actor.id
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="orders",
        record_id=order.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(order),
    )
    db.session.commit()

    if order.status != previous_status:
        _notify_status_change(order)
    return order


def delete_order(actor: User, order_id: int) -> None:
    order = require_order(order_id)
    policy_service.authorize(actor, "DELETE_ORDERS", order)
    _require_open(order)

    def _op():
        target = require_order(order_id)
        before = audit_service.snapshot(target)
        for item in list(target.items):
            stock_service.release(item.product_id, item.warehouse_id, item.quantity)
        db.session.delete(target)
        audit_service.record(
            action="DELETE",
            table_name="orders",
            record_id=order_id,
            user_id=actor.id,
            old_values=before,
        )
        db.session.commit()

    run_with_retry(_op)


def _validate_urls(payload: dict) -> list[str]:
    urls = (payload or {}).get("attachment_urls")
    if urls is None:
        return []
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise ValidationError("Données invalides: attachment_urls: doit être une liste de chaînes")
    return urls


def transmit_order(actor: User, order_id: int, payload: dict) -> dict:
    """
    Email the order PDF (and attachment links) to every active admin.

    The email is the operation: a delivery failure raises
    MailDeliveryError. DRAFT and PAID orders go back to PENDING.
    """
    order = require_order(order_id)
    policy_service.authorize(actor, "TRANSMIT_ORDERS", order)
    urls = _validate_urls(payload)

    recipients = notification_service.active_admin_emails()
    if not recipients:
        raise mail_service.MailDeliveryError("Aucun administrateur destinataire")

    pdf = pdf_service.render_order_pdf(order)
    franchise_name = order.franchise.business_name if order.franchise else "-"
    lines = [f"La franchise {franchise_name} transmet la commande {order.order_number}."]
    if urls:
        lines.append("")
        lines.append("Pièces jointes:")
        lines.extend(f"- {u}" for u in urls)
    text = "\n".join(lines)
    html = "<p>" + "<br>".join(escape(line) for line in lines) + "</p>"

    mail_service.send_email(
        recipients,
        f"Commande {order.order_number} transmise - {notification_service.BRAND}",
        text,
        html,
        attachments=[(f"{order.order_number}.pdf", pdf, "application/pdf")],
    )

    if order.status in {"DRAFT", "PAID"}:
        order.status = "PENDING"
    order.transmitted_attachment_urls = list(urls)
    order.updated_by_id = actor.id
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="orders",
        record_id=order.id,
        user_id=actor.id,
        new_values={"transmitted": True, "attachment_urls": urls},
    )
    db.session.commit()

    notification_service.notify_admins(
        type="DOCUMENT_TRANSMITTED",
        title="Commande transmise",
        message=f"{franchise_name} a transmis la commande {order.order_number}.",
        data={"attachment_urls": urls},
        franchise_id=order.franchise_id,
        related_entity_id=order.id,
        related_entity_type="order",
        action_url=f"/admin/orders/{order.id}",
        send_email=False,
    )
    return {"transmitted": True}


def confirm_reception(actor: User, order_id: int) -> Order:
    policy_service.authorize(actor, "CONFIRM_ORDER_RECEPTION")
    order = require_order(order_id)

    before = audit_service.snapshot(order)
    order.status = "CONFIRMED"
    order.updated_by_id = actor.id
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="orders",
        record_id=order.id,
        user_id=actor.id,
        old_values=before,
        new_values={"status": "CONFIRMED", "reception_confirmed": True},
    )
    db.session.commit()

    notification_service.notify_franchisee(
        order.franchise,
        type="ORDER_CONFIRMED",
        title="Commande confirmée",
        message=f"La réception de la commande {order.order_number} a été confirmée.",
        related_entity_id=order.id,
        related_entity_type="order",
        action_url=f"/franchise/orders/{order.id}",
    )
    return order


# -- items ------------------------------------------------------------------

def list_items(actor: User, order_id) -> list[OrderItem]:
    if order_id in (None, ""):
        raise ValidationError("Données invalides: order_id: champ requis")
    order = get_order(actor, parse_int(order_id, "order_id"))
    return list(order.items)


def add_item(actor: User, payload: dict) -> OrderItem:
    """
    Add a line to an open order, reserving its stock.

    Reservation, item and order total are committed together; on
    insufficient stock nothing is written.
    """
    payload = payload or {}
    require_fields(payload, "order_id", "product_id", "warehouse_id", "quantity")
    order_id = parse_int(payload["order_id"], "order_id")
    product_id = parse_int(payload["product_id"], "product_id")
    warehouse_id = parse_int(payload["warehouse_id"], "warehouse_id")

    order = require_order(order_id)
    policy_service.authorize(actor, "UPDATE_ORDERS", order)
    _require_open(order)

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Produit introuvable")
    if db.session.get(Warehouse, warehouse_id) is None:
        raise NotFoundError("Entrepôt introuvable")

    patch = validate_payload(model=OrderItem, payload=payload, policy=ITEM_POLICY, partial=False)
    quantity = patch["quantity"]
    unit_price = patch.get("unit_price_cents")
    if unit_price is None:
        unit_price = product.unit_price_cents

    def _op():
        target = require_order(order_id)
        stock = stock_service.find_stock(product_id, warehouse_id, lock=True)
        stock_service.reserve(stock, quantity)

        item = OrderItem(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            total_price_cents=unit_price * quantity,
            notes=patch.get("notes"),
        )
        target.items.append(item)
        recompute_total(target)
        target.updated_by_id = actor.id
        db.session.flush()

        audit_service.record(
            action="CREATE",
            table_name="order_items",
            record_id=item.id,
            user_id=actor.id,
            new_values=audit_service.snapshot(item),
        )
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(actor: User, item_id: int) -> Order:
    item = db.session.get(OrderItem, item_id)
    if item is None:
        raise NotFoundError("Article introuvable")
    order = item.order
    policy_service.authorize(actor, "UPDATE_ORDERS", order)
    _require_open(order)

    def _op():
        target_item = db.session.get(OrderItem, item_id)
        if target_item is None:
            raise NotFoundError("Article introuvable")
        target = target_item.order
        before = audit_service.snapshot(target_item)

        stock_service.release(target_item.product_id, target_item.warehouse_id, target_item.quantity)
        target.items.remove(target_item)
        recompute_total(target)
        target.updated_by_id = actor.id
        db.session.flush()

        audit_service.record(
            action="DELETE",
            table_name="order_items",
            record_id=item_id,
            user_id=actor.id,
            old_values=before,
        )
        db.session.commit()
        return target

    return run_with_retry(_op)
