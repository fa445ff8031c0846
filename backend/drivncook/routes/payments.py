# Overview: Flask API routes for Stripe payments (entry fee and orders) and their webhooks.

# backend/drivncook/routes/payments.py
"""
Payment routes.

Two flows share the same shape:
- /entry-fee/{checkout,intent,confirm,webhook}: one-time franchise entry fee
- /orders/{checkout,intent,confirm,webhook}: payment of one order

Confirm and webhook apply the same idempotent mutation, so a payment
confirmed by the client and then by Stripe is applied once.

WEBHOOKS: unauthenticated, verified with the Stripe-Signature header.
Once the signature is valid the answer is always {"received": true},
even if processing fails (the failure is logged).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..responses import error_response, success_response
from ..services import payment_gateway, payment_service

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# ENTRY FEE
# =============================================================================

@payments_bp.post("/entry-fee/checkout")
@require_auth
@require_permission("PAY_ENTRY_FEE")
def entry_fee_checkout_route():
    result = payment_service.start_entry_fee_checkout(g.current_user, request.get_json(silent=True) or {})
    return success_response(result)


@payments_bp.post("/entry-fee/intent")
@require_auth
@require_permission("PAY_ENTRY_FEE")
def entry_fee_intent_route():
    result = payment_service.create_entry_fee_intent(g.current_user, request.get_json(silent=True) or {})
    return success_response(result)


@payments_bp.post("/entry-fee/confirm")
@require_auth
@require_permission("PAY_ENTRY_FEE")
def entry_fee_confirm_route():
    franchise = payment_service.confirm_entry_fee(g.current_user, request.get_json(silent=True) or {})
    return success_response(franchise.to_dict(), "Droit d'entrée réglé")


@payments_bp.post("/entry-fee/webhook")
def entry_fee_webhook_route():
    return _handle_webhook(
        secret=current_app.config.get("STRIPE_ENTRY_FEE_WEBHOOK_SECRET"),
        purpose=payment_service.PURPOSE_ENTRY_FEE,
    )


# =============================================================================
# ORDERS
# =============================================================================

@payments_bp.post("/orders/intent")
@require_auth
@require_permission("PAY_ORDERS")
def order_intent_route():
    result = payment_service.create_order_intent(g.current_user, request.get_json(silent=True) or {})
    return success_response(result)


@payments_bp.post("/orders/checkout")
@require_auth
@require_permission("PAY_ORDERS")
def order_checkout_route():
    result = payment_service.start_order_checkout(g.current_user, request.get_json(silent=True) or {})
    return success_response(result)


@payments_bp.post("/orders/confirm")
@require_auth
@require_permission("PAY_ORDERS")
def order_confirm_route():
    result = payment_service.confirm_order_payment(g.current_user, request.get_json(silent=True) or {})
    return success_response(result, "Paiement de la commande confirmé")


@payments_bp.post("/orders/webhook")
def order_webhook_route():
    return _handle_webhook(
        secret=current_app.config.get("STRIPE_ORDERS_WEBHOOK_SECRET"),
        purpose=payment_service.PURPOSE_ORDER,
    )


def _handle_webhook(*, secret: str | None, purpose: str):
    if not secret:
        current_app.logger.error("Stripe webhook secret is not configured (%s)", purpose)
        return error_response("Webhook non configuré", 500)

    signature = request.headers.get("Stripe-Signature")
    if not signature:
        return error_response("Signature manquante", 400)

    try:
        event = payment_gateway.construct_webhook_event(request.get_data(), signature, secret)
    except payment_gateway.WebhookSignatureError:
        current_app.logger.warning("Rejected Stripe webhook with invalid signature (%s)", purpose)
        return error_response("Signature invalide", 400)

    try:
        handled = payment_service.process_webhook_event(event, purpose=purpose)
        current_app.logger.info("Stripe event %s (%s) handled=%s", event.get("id"), event.get("type"), handled)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Stripe event %s processing failed", event.get("id"))

    return jsonify({"received": True}), 200
