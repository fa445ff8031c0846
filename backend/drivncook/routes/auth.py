# Overview: Flask API routes for registration, login, logout and current user.

# backend/drivncook/routes/auth.py
"""
Authentication API routes.

- POST /api/auth/register: public franchisee self-registration
- POST /api/auth/login: returns a session token (also set as HttpOnly cookie)
- POST /api/auth/logout: revokes the session
- GET  /api/auth/me: current user, role permissions and franchise
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..responses import error_response, success_response
from ..services import auth_service, franchise_service, policy_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": sorted(policy_service.get_role_permissions(user.role)),
        "franchise": user.franchise.to_dict() if user.franchise else None,
    }


@auth_bp.post("/register")
def register_route():
    """Create an inactive franchisee account with a PENDING franchise."""
    payload = request.get_json(silent=True) or {}
    franchise = franchise_service.register(payload)
    return success_response(
        {"user": franchise.user.to_dict(), "franchise": franchise.to_dict()},
        "Inscription enregistrée. Votre dossier sera examiné par notre équipe.",
        201,
    )


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token is returned in the body for Authorization: Bearer use and
    set as an HttpOnly cookie for the page guard.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return error_response("Email et mot de passe requis", 400)

    user = auth_service.authenticate(email, password)
    if not user:
        policy_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            action="LOGIN",
            reason=f"Invalid credentials or inactive account for {auth_service.normalize_email(email)}",
        )
        return error_response("Identifiants invalides ou compte inactif", 401)

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    current_app.logger.info("User %s signed in", user.id)

    body = _user_payload(user)
    body["token"] = token
    body["session"] = session.to_dict()
    response, status = success_response(body, "Connexion réussie")
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("AUTH_COOKIE_SECURE", False),
        max_age=int(current_app.config.get("SESSION_ABSOLUTE_HOURS", 24)) * 3600,
    )
    return response, status


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    response, status = success_response(None, "Déconnexion réussie")
    response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"])
    return response, status


@auth_bp.get("/me")
@require_auth
def me_route():
    return success_response(_user_payload(g.current_user))
