# Overview: Thin Stripe wrapper; the only module importing the stripe SDK.

from __future__ import annotations

import stripe
from flask import current_app

from ..errors import PaymentGatewayError


class WebhookSignatureError(Exception):
    """Webhook payload could not be verified against the shared secret."""


def _configure() -> None:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise PaymentGatewayError("Stripe n'est pas configuré")
    stripe.api_key = key


def _stringify(metadata: dict) -> dict:
    # Stripe metadata values are strings
    return {k: str(v) for k, v in metadata.items() if v is not None}


def create_payment_intent(*, amount_cents: int, metadata: dict, description: str | None = None) -> dict:
    """Returns {"id", "client_secret", "status"}."""
    _configure()
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount_cents,
            currency=current_app.config.get("STRIPE_CURRENCY", "eur"),
            automatic_payment_methods={"enabled": True},
            description=description,
            metadata=_stringify(metadata),
        )
    except stripe.StripeError as e:
        current_app.logger.exception("Stripe PaymentIntent.create failed")
        raise PaymentGatewayError(f"Création du paiement impossible: {e.user_message or e}") from e
    return {"id": intent["id"], "client_secret": intent["client_secret"], "status": intent["status"]}


def create_checkout_session(
    *,
    amount_cents: int,
    product_name: str,
    metadata: dict,
    success_url: str,
    cancel_url: str,
    customer_email: str | None = None,
) -> dict:
    """Returns {"id", "url"}. Metadata is copied onto the payment intent too."""
    _configure()
    meta = _stringify(metadata)
    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": current_app.config.get("STRIPE_CURRENCY", "eur"),
                    "product_data": {"name": product_name},
                    "unit_amount": amount_cents,
                },
                "quantity": 1,
            }],
            metadata=meta,
            payment_intent_data={"metadata": meta},
            customer_email=customer_email,
            success_url=success_url,
            cancel_url=cancel_url,
        )
    except stripe.StripeError as e:
        current_app.logger.exception("Stripe checkout.Session.create failed")
        raise PaymentGatewayError(f"Création de la session de paiement impossible: {e.user_message or e}") from e
    return {"id": session["id"], "url": session["url"]}


def retrieve_payment_intent(payment_intent_id: str) -> dict:
    """Returns {"id", "status", "amount", "metadata"}."""
    _configure()
    try:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as e:
        current_app.logger.warning("Stripe PaymentIntent.retrieve(%s) failed: %s", payment_intent_id, e)
        raise PaymentGatewayError("Paiement introuvable auprès de Stripe") from e
    return {
        "id": intent["id"],
        "status": intent["status"],
        "amount": intent.get("amount"),
        "metadata": dict(intent.get("metadata") or {}),
    }


def construct_webhook_event(payload: bytes, signature: str, secret: str) -> dict:
    """Verify the Stripe-Signature header and parse the event."""
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise WebhookSignatureError(str(e)) from e
    return event.to_dict() if hasattr(event, "to_dict") else dict(event)
