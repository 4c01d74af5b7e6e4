# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory, PermissionKind
from .definitions import (
    PERMISSION_DEFINITIONS,
    CAJA_PERMISSIONS,
    ROLES_PERMISSIONS,
    VIEW_RESTAURANTS,
    VIEW_CATEGORIES,
)
from .helpers import (
    get_all_permission_names,
    get_permissions_by_category,
    get_permission_definition,
    group_permissions,
)
from .matching import (
    Global,
    ResourceWildcard,
    Exact,
    parse_permission,
    grants,
    grants_any,
    menu_implies_visibility,
)

__all__ = [
    "PermissionCategory",
    "PermissionKind",
    "PERMISSION_DEFINITIONS",
    "CAJA_PERMISSIONS",
    "ROLES_PERMISSIONS",
    "VIEW_RESTAURANTS",
    "VIEW_CATEGORIES",
    "get_all_permission_names",
    "get_permissions_by_category",
    "get_permission_definition",
    "group_permissions",
    "Global",
    "ResourceWildcard",
    "Exact",
    "parse_permission",
    "grants",
    "grants_any",
    "menu_implies_visibility",
]
