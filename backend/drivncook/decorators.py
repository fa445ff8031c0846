# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .responses import error_response
from .services import session_service, policy_service


def extract_token() -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require authentication.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated User
    - g.session_context: the full SessionContext

    Returns 401 when the token is missing, invalid, expired or revoked,
    or when the account may no longer sign in.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_token()
        if not token:
            return error_response("Authentification requise", 401)

        context = session_service.validate_session(token)
        if not context:
            return error_response("Session invalide ou expirée", 401)

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a permission of the caller's role (resource ownership is checked in services)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response("Authentification requise", 401)

            try:
                policy_service.authorize(g.current_user, permission_code)
            except policy_service.PermissionDeniedError:
                return error_response("Permission refusée", 403, required_permission=permission_code)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
