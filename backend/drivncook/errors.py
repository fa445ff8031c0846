# Overview: Service-level exception taxonomy and the app-wide error translator.

from __future__ import annotations

from flask import Flask, current_app
from werkzeug.exceptions import HTTPException

from .extensions import db
from .responses import error_response
from .validation import ValidationError, ConflictError


class NotFoundError(LookupError):
    """404: resource id did not resolve."""


class BusinessRuleError(ValueError):
    """400: request is well-formed but violates a business rule."""


class AuthenticationError(Exception):
    """401: no valid session."""


class PaymentGatewayError(Exception):
    """502: payment processor call failed."""


def register_error_handlers(app: Flask) -> None:
    """Translate raised exceptions into the JSON error envelope."""
    from .services.mail_service import MailDeliveryError
    from .services.policy_service import PermissionDeniedError

    def _rejected(message: str, status: int, **extra):
        # Nothing staged by a rejected request may leak into a later commit
        db.session.rollback()
        return error_response(message, status, **extra)

    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        return _rejected(str(e), 400, details=e.errors)

    @app.errorhandler(ConflictError)
    def _conflict(e: ConflictError):
        return _rejected(str(e), 400)

    @app.errorhandler(BusinessRuleError)
    def _business(e: BusinessRuleError):
        return _rejected(str(e), 400)

    @app.errorhandler(AuthenticationError)
    def _unauthenticated(e: AuthenticationError):
        return error_response(str(e) or "Non authentifié", 401)

    @app.errorhandler(PermissionDeniedError)
    def _forbidden(e: PermissionDeniedError):
        return _rejected(str(e) or "Permission refusée", 403)

    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return _rejected(str(e) or "Ressource introuvable", 404)

    @app.errorhandler(PaymentGatewayError)
    def _gateway(e: PaymentGatewayError):
        current_app.logger.warning("Payment gateway error: %s", e)
        return error_response(str(e) or "Erreur du prestataire de paiement", 502)

    @app.errorhandler(MailDeliveryError)
    def _mail(e: MailDeliveryError):
        db.session.rollback()
        current_app.logger.error("Email delivery failed: %s", e)
        return error_response(str(e) or "Envoi de l'email impossible", 500)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        if app.debug and not app.testing:
            raise e
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return error_response("Erreur interne du serveur", 500)
