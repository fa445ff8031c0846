# Overview: Central authorization policy: role permissions plus franchise ownership.

"""
Authorization policy evaluator.

Every handler asks one question: may `actor` perform `action` (on
`resource`)? The answer combines:
- the role's permission set (permissions/roles.py)
- franchise ownership: a FRANCHISEE only touches resources whose
  franchise is their own

Fail closed: unknown actions and unowned resources are denied.
Denials are written to security_events.
"""

from flask import has_request_context, request

from ..extensions import db
from ..models import Franchise, SecurityEvent, User
from ..models.auth import ROLE_FRANCHISEE
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from drivncook.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the actor may not perform the action."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples: PERMISSION_DENIED, OWNERSHIP_DENIED, LOGIN_FAILED.
    """
    ip_address = user_agent = None
    if has_request_context():
        resource = resource or request.path
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_role_permissions(role: str | None) -> frozenset[str]:
    return DEFAULT_ROLE_PERMISSIONS.get(role or "", frozenset())


def has_permission(actor: User | None, action: str) -> bool:
    if actor is None:
        return False
    return action in get_role_permissions(actor.role)


def resource_franchise_id(resource) -> int | None:
    if isinstance(resource, Franchise):
        return resource.id
    return getattr(resource, "franchise_id", None)


def owns(actor: User, resource) -> bool:
    """Admins own everything; a franchisee owns what belongs to their franchise."""
    if actor.role != ROLE_FRANCHISEE:
        return True
    own_id = actor.franchise_id
    return own_id is not None and resource_franchise_id(resource) == own_id


def authorize(actor: User | None, action: str, resource=None) -> None:
    """
    Raise PermissionDeniedError unless actor may perform action on resource.

    resource may be any model exposing franchise_id (or a Franchise).
    """
    if actor is None:
        raise PermissionDeniedError("Permission refusée")

    if not has_permission(actor, action):
        log_security_event(
            user_id=actor.id,
            event_type="PERMISSION_DENIED",
            success=False,
            action=action,
            reason=f"Role {actor.role} lacks {action}",
        )
        raise PermissionDeniedError("Permission refusée")

    if resource is not None and not owns(actor, resource):
        log_security_event(
            user_id=actor.id,
            event_type="OWNERSHIP_DENIED",
            success=False,
            action=action,
            reason=(
                f"{type(resource).__name__} {getattr(resource, 'id', None)} "
                f"belongs to franchise {resource_franchise_id(resource)}"
            ),
        )
        raise PermissionDeniedError("Permission refusée")


def franchise_scope(actor: User) -> int | None:
    """
    Franchise a listing must be restricted to.

    FRANCHISEE -> their franchise id (or -1 when they have none, matching
    nothing); admins -> None (no restriction).
    """
    if actor.role != ROLE_FRANCHISEE:
        return None
    return actor.franchise_id if actor.franchise_id is not None else -1


def is_franchisee(actor: User) -> bool:
    return actor.role == ROLE_FRANCHISEE
