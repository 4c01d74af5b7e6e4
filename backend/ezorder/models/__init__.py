from .restaurants import Restaurant, UserRestaurant
from .auth import User, CustomRole, Permission, RolePermission, SessionToken
from .cash import CashSession
from .ledger import Sale, Expense
from .security import SecurityEvent

__all__ = [
    'Restaurant', 'UserRestaurant',
    'User', 'CustomRole', 'Permission', 'RolePermission', 'SessionToken',
    'CashSession',
    'Sale', 'Expense',
    'SecurityEvent',
]
