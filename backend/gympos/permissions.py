"""
Permission codes and default role mappings.

WHY: Centralized permission definitions ensure consistency across the application.
All permission codes and role mappings defined here.

- Admin has all permissions by default
- Staff can run the till but cannot change stock outside of a sale
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    USERS = "USERS"
    REPORTS = "REPORTS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View items, quantities and ledger history",
        PermissionCategory.INVENTORY
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Create items and record purchases, adjustments and bulk transactions",
        PermissionCategory.INVENTORY
    ),
    (
        "MANAGE_SALES",
        "Manage Sales",
        "Process point-of-sale transactions and view sales",
        PermissionCategory.SALES
    ),
    (
        "VIEW_REPORTS",
        "View Reports",
        "View sales summaries and inventory reconciliation",
        PermissionCategory.REPORTS
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Manage users, roles, companies and branches",
        PermissionCategory.USERS
    ),
]


# =============================================================================
# DEFAULT ROLES
# =============================================================================

DEFAULT_ROLES = [
    ("admin", "Full system access"),
    ("manager", "Can manage inventory, sales, and reports"),
    ("staff", "Basic access for daily operations"),
]

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [code for code, _, _, _ in PERMISSION_DEFINITIONS],
    "manager": [
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "MANAGE_SALES",
        "VIEW_REPORTS",
    ],
    "staff": [
        "VIEW_INVENTORY",
        "MANAGE_SALES",
    ],
}
