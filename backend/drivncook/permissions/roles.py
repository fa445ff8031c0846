# Overview: Default permission sets per user role.

from .definitions import PERMISSION_DEFINITIONS


ALL_PERMISSION_CODES = frozenset(code for code, _, _, _ in PERMISSION_DEFINITIONS)

FRANCHISEE_PERMISSIONS = frozenset({
    "VIEW_FRANCHISES",
    "UPDATE_OWN_FRANCHISE",
    "VIEW_VEHICLES",
    "UPDATE_VEHICLE_STATUS",
    "MANAGE_MAINTENANCE",
    "VIEW_CATALOG",
    "VIEW_WAREHOUSES",
    "VIEW_STOCK",
    "VIEW_ORDERS",
    "CREATE_ORDERS",
    "UPDATE_ORDERS",
    "DELETE_ORDERS",
    "TRANSMIT_ORDERS",
    "VIEW_INVOICES",
    "VIEW_SALES_REPORTS",
    "CREATE_SALES_REPORTS",
    "PAY_ENTRY_FEE",
    "PAY_ORDERS",
    "VIEW_NOTIFICATIONS",
    "VIEW_DASHBOARD",
})

ADMIN_PERMISSIONS = ALL_PERMISSION_CODES - {"DELETE_FRANCHISES", "PAY_ENTRY_FEE", "UPDATE_OWN_FRANCHISE"}

DEFAULT_ROLE_PERMISSIONS = {
    "SUPER_ADMIN": ALL_PERMISSION_CODES,
    "ADMIN": ADMIN_PERMISSIONS,
    "FRANCHISEE": FRANCHISEE_PERMISSIONS,
}
