# backend/drivncook/services/catalog_service.py
"""
Product catalog: categories and products.

SKU and category names are unique. Products referenced by order items
cannot be deleted (deactivate them instead).
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import BusinessRuleError, NotFoundError
from ..extensions import db
from ..models import OrderItem, Product, ProductCategory, Stock, User
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    min_length,
    min_value,
    money,
    validate_payload,
)
from . import audit_service, policy_service
from .pagination import PageParams, paginate

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
    rules={"name": min_length(2)},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "sku", "barcode", "unit_price_cents", "unit",
        "min_stock", "max_stock", "image_url", "category_id", "is_active",
    },
    required_on_create={"name", "sku", "unit_price_cents", "category_id"},
    rules={
        "name": min_length(2),
        "sku": min_length(2),
        "unit_price_cents": money,
        "min_stock": min_value(0),
        "max_stock": min_value(0),
    },
)

PRODUCT_SORTABLE = {"created_at", "name", "sku", "unit_price_cents"}


def list_categories(*, include_inactive: bool = False) -> list[ProductCategory]:
    query = db.session.query(ProductCategory)
    if not include_inactive:
        query = query.filter(ProductCategory.is_active.is_(True))
    return query.order_by(ProductCategory.name.asc()).all()


def create_category(actor: User, payload: dict) -> ProductCategory:
    policy_service.authorize(actor, "MANAGE_CATALOG")
    patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    exists = (
        db.session.query(ProductCategory.id)
        .filter(db.func.lower(ProductCategory.name) == patch["name"].lower())
        .first()
    )
    if exists:
        raise ConflictError("Une catégorie porte déjà ce nom")

    category = ProductCategory(**patch)
    db.session.add(category)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="product_categories",
        record_id=category.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(category),
    )
    db.session.commit()
    return category


def _require_category(category_id: int) -> ProductCategory:
    category = db.session.get(ProductCategory, category_id)
    if category is None:
        raise NotFoundError("Catégorie introuvable")
    return category


def _check_sku(sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("Ce SKU est déjà utilisé")


def require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Produit introuvable")
    return product


def list_products(
    params: PageParams,
    *,
    search: str | None = None,
    category_id: int | None = None,
    is_active: bool | None = None,
) -> dict:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))
    return paginate(query, Product, params, sortable=PRODUCT_SORTABLE)


def create_product(actor: User, payload: dict) -> Product:
    policy_service.authorize(actor, "MANAGE_CATALOG")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _require_category(patch["category_id"])
    _check_sku(patch["sku"])

    product = Product(**patch)
    db.session.add(product)
    db.session.flush()
    audit_service.record(
        action="CREATE",
        table_name="products",
        record_id=product.id,
        user_id=actor.id,
        new_values=audit_service.snapshot(product),
    )
    db.session.commit()
    return product


def product_detail(product: Product) -> dict:
    """Product with its stock in every warehouse."""
    data = product.to_dict()
    stocks = (
        db.session.query(Stock)
        .filter(Stock.product_id == product.id)
        .order_by(Stock.warehouse_id.asc())
        .all()
    )
    data["stocks"] = [
        {
            "warehouse_id": s.warehouse_id,
            "warehouse_name": s.warehouse.name if s.warehouse else None,
            "quantity": s.quantity,
            "reserved_qty": s.reserved_qty,
            "available_qty": s.available,
        }
        for s in stocks
    ]
    data["total_quantity"] = sum(s.quantity for s in stocks)
    return data


def update_product(actor: User, product_id: int, payload: dict) -> Product:
    policy_service.authorize(actor, "MANAGE_CATALOG")
    product = require_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if "category_id" in patch:
        _require_category(patch["category_id"])
    if "sku" in patch and patch["sku"] != product.sku:
        _check_sku(patch["sku"], exclude_id=product.id)

    before = audit_service.snapshot(product)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.flush()
    audit_service.record(
        action="UPDATE",
        table_name="products",
        record_id=product.id,
        user_id=actor.id,
        old_values=before,
        new_values=audit_service.snapshot(product),
    )
    db.session.commit()
    return product


def delete_product(actor: User, product_id: int) -> None:
    policy_service.authorize(actor, "MANAGE_CATALOG")
    product = require_product(product_id)

    if db.session.query(OrderItem.id).filter(OrderItem.product_id == product.id).first():
        raise BusinessRuleError("Impossible de supprimer un produit présent dans des commandes")

    before = audit_service.snapshot(product)
    db.session.query(Stock).filter(Stock.product_id == product.id).delete(synchronize_session=False)
    db.session.delete(product)
    audit_service.record(
        action="DELETE",
        table_name="products",
        record_id=product_id,
        user_id=actor.id,
        old_values=before,
    )
    db.session.commit()
