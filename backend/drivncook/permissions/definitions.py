# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- FRANCHISES --

FRANCHISE_PERMISSIONS = [
    ("VIEW_FRANCHISES", "View Franchises", "List and read franchises", PermissionCategory.FRANCHISES),
    ("MANAGE_FRANCHISES", "Manage Franchises", "Create and edit franchises", PermissionCategory.FRANCHISES),
    ("UPDATE_OWN_FRANCHISE", "Update Own Franchise", "Edit contact details and documents of one's franchise", PermissionCategory.FRANCHISES),
    ("DELETE_FRANCHISES", "Delete Franchises", "Delete a franchise and its financial history", PermissionCategory.FRANCHISES),
    ("VALIDATE_FRANCHISE_DOCUMENTS", "Validate Documents", "Validate or request franchise documents", PermissionCategory.FRANCHISES),
]


# -- FLEET --

FLEET_PERMISSIONS = [
    ("VIEW_VEHICLES", "View Vehicles", "List and read vehicles", PermissionCategory.FLEET),
    ("MANAGE_VEHICLES", "Manage Vehicles", "Create, assign and delete vehicles", PermissionCategory.FLEET),
    ("UPDATE_VEHICLE_STATUS", "Update Vehicle", "Update mileage and position of a vehicle", PermissionCategory.FLEET),
    ("MANAGE_MAINTENANCE", "Manage Maintenance", "Record vehicle maintenance", PermissionCategory.FLEET),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    ("VIEW_CATALOG", "View Catalog", "List products and categories", PermissionCategory.CATALOG),
    ("MANAGE_CATALOG", "Manage Catalog", "Create and edit products and categories", PermissionCategory.CATALOG),
    ("VIEW_WAREHOUSES", "View Warehouses", "List warehouses", PermissionCategory.CATALOG),
    ("MANAGE_WAREHOUSES", "Manage Warehouses", "Create and edit warehouses", PermissionCategory.CATALOG),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    ("VIEW_STOCK", "View Stock", "View stock levels", PermissionCategory.INVENTORY),
    ("ADJUST_STOCK", "Adjust Stock", "ADD/REMOVE/SET stock quantities", PermissionCategory.INVENTORY),
]


# -- ORDERS --

ORDER_PERMISSIONS = [
    ("VIEW_ORDERS", "View Orders", "List and read orders", PermissionCategory.ORDERS),
    ("CREATE_ORDERS", "Create Orders", "Create orders and add items", PermissionCategory.ORDERS),
    ("UPDATE_ORDERS", "Update Orders", "Change order status, dates and notes", PermissionCategory.ORDERS),
    ("DELETE_ORDERS", "Delete Orders", "Delete DRAFT or PENDING orders", PermissionCategory.ORDERS),
    ("TRANSMIT_ORDERS", "Transmit Orders", "Send an order to the head office", PermissionCategory.ORDERS),
    ("CONFIRM_ORDER_RECEPTION", "Confirm Reception", "Confirm a transmitted order", PermissionCategory.ORDERS),
]


# -- FINANCE --

FINANCE_PERMISSIONS = [
    ("VIEW_INVOICES", "View Invoices", "List, read and download invoices", PermissionCategory.FINANCE),
    ("MANAGE_INVOICES", "Manage Invoices", "Create and edit invoices", PermissionCategory.FINANCE),
    ("GENERATE_INVOICES", "Generate Royalty Invoices", "Bill monthly royalties", PermissionCategory.FINANCE),
    ("VIEW_SALES_REPORTS", "View Sales Reports", "List sales reports", PermissionCategory.FINANCE),
    ("CREATE_SALES_REPORTS", "Create Sales Reports", "Declare daily sales", PermissionCategory.FINANCE),
]


# -- PAYMENTS --

PAYMENT_PERMISSIONS = [
    ("PAY_ENTRY_FEE", "Pay Entry Fee", "Pay the franchise entry fee", PermissionCategory.PAYMENTS),
    ("PAY_ORDERS", "Pay Orders", "Pay an order online", PermissionCategory.PAYMENTS),
]


# -- COMMUNICATIONS --

COMMUNICATION_PERMISSIONS = [
    ("VIEW_NOTIFICATIONS", "View Notifications", "Read own notifications", PermissionCategory.COMMUNICATIONS),
    ("VIEW_ADMIN_NOTIFICATIONS", "View Admin Notifications", "Read the admin notification feed", PermissionCategory.COMMUNICATIONS),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    ("VIEW_DASHBOARD", "View Dashboard", "Read dashboard statistics", PermissionCategory.SYSTEM),
]


PERMISSION_DEFINITIONS = (
    FRANCHISE_PERMISSIONS
    + FLEET_PERMISSIONS
    + CATALOG_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + ORDER_PERMISSIONS
    + FINANCE_PERMISSIONS
    + PAYMENT_PERMISSIONS
    + COMMUNICATION_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
