# Overview: Role-based guard and placeholder pages for the web sections.

# backend/drivncook/routes/pages.py
"""
Page guard for the non-API sections of the site.

Rules, evaluated before every non-/api request:
- /login, /register, /contact, /unauthorized, /health are public
- no valid session -> 302 /login
- /admin/* requires ADMIN or SUPER_ADMIN
- /franchise/* requires FRANCHISEE with an active account
- role mismatch -> 302 /unauthorized
- / -> the caller's dashboard

The pages themselves are JSON placeholders; the front end is served
separately.
"""

from flask import Blueprint, g, jsonify, redirect, request

from ..decorators import extract_token
from ..services import session_service
from ..models.auth import ADMIN_ROLES, ROLE_FRANCHISEE

pages_bp = Blueprint("pages", __name__)

PUBLIC_PATHS = {"/login", "/register", "/contact", "/unauthorized", "/health"}
DASHBOARDS = {
    "SUPER_ADMIN": "/admin/dashboard",
    "ADMIN": "/admin/dashboard",
    "FRANCHISEE": "/franchise/dashboard",
}


def _in_section(path: str, section: str) -> bool:
    return path == section or path.startswith(section + "/")


@pages_bp.before_app_request
def guard_pages():
    path = request.path.rstrip("/") or "/"
    if _in_section(path, "/api") or _in_section(path, "/static") or path in PUBLIC_PATHS:
        return None

    token = extract_token()
    context = session_service.validate_session(token) if token else None
    if context is None:
        return redirect("/login")
    user = context.user
    g.current_user = user

    if path == "/":
        return redirect(DASHBOARDS.get(user.role, "/login"))

    if _in_section(path, "/admin") and user.role not in ADMIN_ROLES:
        return redirect("/unauthorized")

    if _in_section(path, "/franchise") and (user.role != ROLE_FRANCHISEE or not user.is_active):
        return redirect("/unauthorized")

    return None


def _placeholder(page: str):
    return jsonify({"page": page})


@pages_bp.get("/")
def index_page():
    return redirect("/login")


@pages_bp.get("/login")
def login_page():
    return _placeholder("login")


@pages_bp.get("/register")
def register_page():
    return _placeholder("register")


@pages_bp.get("/contact")
def contact_page():
    return _placeholder("contact")


@pages_bp.get("/unauthorized")
def unauthorized_page():
    return _placeholder("unauthorized")


@pages_bp.get("/health")
def health_page():
    return _placeholder("health")


@pages_bp.get("/admin", defaults={"page": "dashboard"})
@pages_bp.get("/admin/<path:page>")
def admin_page(page: str):
    return _placeholder(f"admin/{page}")


@pages_bp.get("/franchise", defaults={"page": "dashboard"})
@pages_bp.get("/franchise/<path:page>")
def franchise_page(page: str):
    return _placeholder(f"franchise/{page}")
