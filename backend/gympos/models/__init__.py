from .tenancy import Company, Branch
from .auth import User, UserBranch, Role, Permission, RolePermission, SessionToken
from .inventory import InventoryItem, InventoryTransaction
from .sales import Sale, SaleItem

__all__ = [
    'Company', 'Branch',
    'User', 'UserBranch', 'Role', 'Permission', 'RolePermission', 'SessionToken',
    'InventoryItem', 'InventoryTransaction',
    'Sale', 'SaleItem',
]
