# Overview: Permission category constants.


class PermissionCategory:
    FRANCHISES = "FRANCHISES"
    FLEET = "FLEET"
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    ORDERS = "ORDERS"
    FINANCE = "FINANCE"
    PAYMENTS = "PAYMENTS"
    COMMUNICATIONS = "COMMUNICATIONS"
    SYSTEM = "SYSTEM"
