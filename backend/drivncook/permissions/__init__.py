# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    FRANCHISE_PERMISSIONS,
    FLEET_PERMISSIONS,
    CATALOG_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    ORDER_PERMISSIONS,
    FINANCE_PERMISSIONS,
    PAYMENT_PERMISSIONS,
    COMMUNICATION_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import ALL_PERMISSION_CODES, DEFAULT_ROLE_PERMISSIONS

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "FRANCHISE_PERMISSIONS",
    "FLEET_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "ORDER_PERMISSIONS",
    "FINANCE_PERMISSIONS",
    "PAYMENT_PERMISSIONS",
    "COMMUNICATION_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "ALL_PERMISSION_CODES",
    "DEFAULT_ROLE_PERMISSIONS",
]
