# Overview: Flask API routes for the product catalog and product categories.

# backend/drivncook/routes/products.py
"""
Catalog API routes.

- GET/POST /api/products, GET/PUT/DELETE /api/products/<id>
- GET/POST /api/product-categories

Product detail includes the stock rows of every warehouse.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import catalog_service
from ..services.pagination import parse_page_params
from ..validation import optional_bool, optional_int

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("product_categories", __name__, url_prefix="/api/product-categories")


@products_bp.get("")
@require_auth
@require_permission("VIEW_CATALOG")
def list_products_route():
    result = catalog_service.list_products(
        parse_page_params(request.args),
        search=request.args.get("search"),
        category_id=optional_int(request.args.get("category_id"), "category_id"),
        is_active=optional_bool(request.args.get("is_active")),
    )
    return success_response(result)


@products_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_product_route():
    product = catalog_service.create_product(g.current_user, request.get_json(silent=True) or {})
    return success_response(product.to_dict(), "Produit créé", 201)


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_product_route(product_id: int):
    product = catalog_service.require_product(product_id)
    return success_response(catalog_service.product_detail(product))


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_product_route(product_id: int):
    product = catalog_service.update_product(g.current_user, product_id, request.get_json(silent=True) or {})
    return success_response(product.to_dict(), "Produit mis à jour")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_product_route(product_id: int):
    catalog_service.delete_product(g.current_user, product_id)
    return success_response(None, "Produit supprimé")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_CATALOG")
def list_categories_route():
    include_inactive = bool(optional_bool(request.args.get("include_inactive")))
    categories = catalog_service.list_categories(include_inactive=include_inactive)
    return success_response([c.to_dict() for c in categories])


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_category_route():
    category = catalog_service.create_category(g.current_user, request.get_json(silent=True) or {})
    return success_response(category.to_dict(), "Catégorie créée", 201)
