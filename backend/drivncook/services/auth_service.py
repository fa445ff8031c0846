# Overview: Password hashing, credential checks and account creation.

"""
Authentication service.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
- A franchisee whose franchise is still PENDING may sign in while the
  account is inactive: that is how they pay the entry fee and upload
  their documents. Any other inactive account is refused.
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES, ROLE_FRANCHISEE
from ..validation import EMAIL_RE


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Le mot de passe doit contenir au moins 8 caractères")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins une majuscule")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins une minuscule")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins un chiffre")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-+=]", password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins un caractère spécial")


def hash_password(password: str) -> str:
    """Validate strength then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def can_sign_in(user: User) -> bool:
    if user.is_active:
        return True
    franchise = user.franchise
    return user.role == ROLE_FRANCHISEE and franchise is not None and franchise.status == "PENDING"


def authenticate(email: str, password: str) -> User | None:
    """Return the user when credentials match and the account may sign in."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not can_sign_in(user):
        return None
    return user


def build_user(
    *,
    email: str,
    password: str,
    role: str,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    is_active: bool = True,
) -> User:
    """
    Validate and stage a new user in the session (no commit).

    Raises ValueError on bad email/role or duplicate email,
    PasswordValidationError on weak password.
    """
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise ValueError("Email invalide")
    if role not in USER_ROLES:
        raise ValueError(f"Rôle invalide: {role}")
    if db.session.query(User.id).filter_by(email=email).first():
        raise ValueError("Cette adresse email est déjà utilisée")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
        is_active=is_active,
    )
    db.session.add(user)
    return user


def create_user(**kwargs) -> User:
    user = build_user(**kwargs)
    db.session.commit()
    return user
