# Overview: Utility functions for permission lookups and catalog ordering.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_names():
    """Get list of all permission names."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[2] == category]


def get_permission_definition(name):
    """Get full definition for a permission name."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == name:
            return {
                "name": perm[0],
                "description": perm[1],
                "category": perm[2],
                "kind": perm[3],
            }
    return None


def action_order(name: str) -> int:
    """Sort key for actions: ver, crear, editar, eliminar, then the rest."""
    if name.endswith(".ver"):
        return 1
    if name.endswith(".crear"):
        return 2
    if name.endswith(".editar"):
        return 3
    if name.endswith(".eliminar"):
        return 4
    return 5


def group_permissions(permissions: list[dict]) -> dict:
    """
    Group serialized permissions by kind, then category.

    Each category list is ordered by action_order, ties alphabetical.
    """
    grouped: dict[str, dict[str, list[dict]]] = {}
    for perm in permissions:
        kind = perm.get("kind") or "restaurante"
        grouped.setdefault(kind, {}).setdefault(perm["category"], []).append(perm)

    for categories in grouped.values():
        for items in categories.values():
            items.sort(key=lambda p: (action_order(p["name"]), p["name"]))

    return grouped
