# Overview: Warehouse stock levels, manual adjustments and order-item reservations.

from __future__ import annotations

from flask import current_app

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import Product, Stock, User, Warehouse
from ..validation import ValidationError, parse_int, require_fields
from . import audit_service, notification_service, policy_service
from .concurrency import lock_for_update, run_with_retry
from .pagination import PageParams, paginate
from drivncook.time_utils import utcnow

"""
Stock invariants

- One Stock row per (product, warehouse).
- quantity >= 0 at all times; REMOVE clamps at zero.
- reserved_qty <= quantity is checked when reserving (order items).
  Manual adjustments never touch reserved_qty.
- Reservations lock the stock row (FOR UPDATE; version_id_col on SQLite)
  and commit together with the order item and order total.
"""

STOCK_OPERATIONS = {"ADD", "REMOVE", "SET"}
SORTABLE = {"created_at", "updated_at", "quantity", "reserved_qty"}


def _require(model, object_id: int, label: str):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} introuvable")
    return obj


def find_stock(product_id: int, warehouse_id: int, *, lock: bool = False) -> Stock | None:
    query = db.session.query(Stock).filter(
        Stock.product_id == product_id,
        Stock.warehouse_id == warehouse_id,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def apply_operation(current: int, operation: str, delta: int) -> int:
    """New on-hand quantity for an ADD / REMOVE / SET adjustment."""
    if operation == "ADD":
        return current + delta
    if operation == "REMOVE":
        return max(0, current - delta)
    if operation == "SET":
        return delta
    raise ValueError(f"Unknown stock operation: {operation}")


def adjust_stock(actor: User, payload: dict) -> Stock:
    """
    Manual stock adjustment (ADD, REMOVE or SET) with its audit entry,
    committed together. Creates the stock row unless removing.
    """
    policy_service.authorize(actor, "ADJUST_STOCK")
    payload = payload or {}
    require_fields(payload, "product_id", "warehouse_id", "quantity", "operation")

    product_id = parse_int(payload["product_id"], "product_id")
    warehouse_id = parse_int(payload["warehouse_id"], "warehouse_id")
    delta = parse_int(payload["quantity"], "quantity")
    if delta < 0:
        raise ValidationError("Données invalides: quantity: doit être >= 0")
    operation = str(payload["operation"]).upper()
    if operation not in STOCK_OPERATIONS:
        raise ValidationError("Données invalides: operation: valeur invalide (attendu: ADD, REMOVE, SET)")
    notes = payload.get("notes")

    product = _require(Product, product_id, "Produit")
    _require(Warehouse, warehouse_id, "Entrepôt")

    def _op():
        stock = find_stock(product_id, warehouse_id, lock=True)
        if stock is None:
            if operation == "REMOVE":
                raise BusinessRuleError("Impossible de retirer du stock inexistant")
            stock = Stock(product_id=product_id, warehouse_id=warehouse_id, quantity=0, reserved_qty=0)
            db.session.add(stock)

        stock.quantity = apply_operation(stock.quantity or 0, operation, delta)
        if operation in {"ADD", "SET"}:
            stock.last_restock_date = utcnow()
        db.session.flush()

        audit_service.record(
            action="UPDATE",
            table_name="stocks",
            record_id=stock.id,
            user_id=actor.id,
            new_values={
                "operation": operation,
                "quantity": delta,
                "new_total": stock.quantity,
                "notes": notes,
            },
        )
        db.session.commit()
        return stock

    stock = run_with_retry(_op)
    current_app.logger.info(
        "Stock %s (product %s, warehouse %s) %s %s -> %s",
        stock.id, product_id, warehouse_id, operation, delta, stock.quantity,
    )

    if stock.quantity <= product.min_stock:
        notification_service.notify_admins(
            type="STOCK_LOW",
            priority="HIGH",
            title="Stock bas",
            message=(
                f"Le stock de {product.name} ({product.sku}) dans l'entrepôt "
                f"{stock.warehouse.name} est de {stock.quantity} (minimum {product.min_stock})."
            ),
            data={"product_id": product.id, "warehouse_id": stock.warehouse_id, "quantity": stock.quantity},
            related_entity_id=stock.id,
            related_entity_type="stock",
            action_url="/admin/stocks",
        )
    return stock


def list_stocks(
    params: PageParams,
    *,
    warehouse_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
) -> dict:
    query = db.session.query(Stock)
    if warehouse_id is not None:
        query = query.filter(Stock.warehouse_id == warehouse_id)
    if product_id is not None:
        query = query.filter(Stock.product_id == product_id)
    if low_stock:
        query = query.join(Product, Stock.product_id == Product.id).filter(Stock.quantity <= Product.min_stock)
    return paginate(query, Stock, params, sortable=SORTABLE)


def reserve(stock: Stock | None, quantity: int) -> Stock:
    """Hold `quantity` units on a locked stock row. Raises before mutating."""
    if stock is None or stock.available < quantity:
        raise BusinessRuleError("Stock insuffisant")
    stock.reserved_qty += quantity
    return stock


def release(product_id: int, warehouse_id: int, quantity: int) -> None:
    """Give back a reservation (item removed or order deleted)."""
    stock = find_stock(product_id, warehouse_id, lock=True)
    if stock is None:
        return
    stock.reserved_qty = max(0, stock.reserved_qty - quantity)
