# Overview: Flask API routes for stock levels and adjustments.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..responses import success_response
from ..services import stock_service
from ..services.pagination import parse_page_params
from ..validation import optional_bool, optional_int

stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


@stocks_bp.get("")
@require_auth
@require_permission("VIEW_STOCK")
def list_stocks_route():
    """Query params: warehouse_id, product_id, low_stock=true (quantity <= product min_stock)."""
    result = stock_service.list_stocks(
        parse_page_params(request.args, default_limit=20),
        warehouse_id=optional_int(request.args.get("warehouse_id"), "warehouse_id"),
        product_id=optional_int(request.args.get("product_id"), "product_id"),
        low_stock=bool(optional_bool(request.args.get("low_stock"))),
    )
    return success_response(result)


@stocks_bp.post("")
@require_auth
@require_permission("ADJUST_STOCK")
def adjust_stock_route():
    """Body: {product_id, warehouse_id, quantity, operation: ADD|REMOVE|SET, notes?}."""
    stock = stock_service.adjust_stock(g.current_user, request.get_json(silent=True) or {})
    return success_response(stock.to_dict(), "Stock mis à jour")
