# Overview: Service-layer operations for custom roles; encapsulates business logic and database work.

"""
Custom Role Management

WHY: Admins compose granular permission sets and hand them to staff.

RULES:
- Role names are unique
- permission_ids must all resolve; unknown ids reject the whole request
- A role cannot be deleted while any user still references it
- Updating permission_ids replaces the association set wholesale
"""

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import CustomRole, Permission, RolePermission, User
from ..validation import is_missing, parse_bool, parse_optional_text, pick
from ezorder.time_utils import utcnow

from .record_store import RecordStore


DEFAULT_ROLE_COLOR = "#3B82F6"
DEFAULT_ROLE_ICON = "user"


def _parse_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name is required")
    name = value.strip()
    if len(name) > 64:
        raise ValidationError("name exceeds max length 64")
    return name


def _parse_permission_ids(store: RecordStore, value) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError("permission_ids must be a list")

    ids = []
    for raw in value:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError("permission_ids must contain integers")
        if raw not in ids:
            ids.append(raw)

    if ids:
        found = {p.id for p in store.find(Permission, {"id__in": ids})}
        missing = [pid for pid in ids if pid not in found]
        if missing:
            raise ValidationError("Unknown permission ids", invalid_permission_ids=missing)
    return ids


def _replace_permissions(store: RecordStore, role_id: int, permission_ids: list[int]) -> None:
    store.delete(RolePermission, {"role_id": role_id})
    for permission_id in permission_ids:
        store.insert(RolePermission, {"role_id": role_id, "permission_id": permission_id})


def list_roles(store: RecordStore, *, include_inactive: bool = True) -> list[CustomRole]:
    filters = {} if include_inactive else {"is_active": True}
    return store.find(CustomRole, filters, order_by="name")


def get_role(store: RecordStore, role_id: int) -> CustomRole:
    role = store.get(CustomRole, role_id)
    if not role:
        raise NotFoundError("Role not found")
    return role


def create_role(store: RecordStore, payload: dict, *, created_by_user_id: int | None = None) -> CustomRole:
    name = _parse_name(payload.get("name"))
    if "permission_ids" not in payload:
        raise ValidationError("permission_ids is required")
    permission_ids = _parse_permission_ids(store, payload.get("permission_ids"))

    description = parse_optional_text(payload.get("description"), "description")
    color = parse_optional_text(payload.get("color"), "color", max_length=16) or DEFAULT_ROLE_COLOR
    icon = parse_optional_text(payload.get("icon"), "icon", max_length=32) or DEFAULT_ROLE_ICON
    is_super_admin = parse_bool(payload.get("is_super_admin", False), "is_super_admin")
    requires_manual_close = parse_bool(payload.get("requires_manual_close", False), "requires_manual_close")

    if store.find_one(CustomRole, {"name": name}):
        raise ConflictError(f"A role named '{name}' already exists")

    try:
        role = store.insert(CustomRole, {
            "name": name,
            "description": description,
            "color": color,
            "icon": icon,
            "is_active": True,
            "is_super_admin": is_super_admin,
            "requires_manual_close": requires_manual_close,
            "created_by_user_id": created_by_user_id,
        })
    except IntegrityError:
        # A concurrent create took the name between the check and the insert
        store.rollback()
        raise ConflictError(f"A role named '{name}' already exists")
    _replace_permissions(store, role.id, permission_ids)
    store.commit()
    store.refresh(role)
    return role


def update_role(store: RecordStore, role_id: int, payload: dict) -> CustomRole:
    role = get_role(store, role_id)

    patch = {}

    name = pick(payload, "name")
    if not is_missing(name):
        name = _parse_name(name)
        if store.find_one(CustomRole, {"name": name, "id__ne": role_id}):
            raise ConflictError(f"A role named '{name}' already exists")
        patch["name"] = name

    description = pick(payload, "description")
    if not is_missing(description):
        patch["description"] = parse_optional_text(description, "description")

    color = pick(payload, "color")
    if not is_missing(color):
        patch["color"] = parse_optional_text(color, "color", max_length=16) or DEFAULT_ROLE_COLOR

    icon = pick(payload, "icon")
    if not is_missing(icon):
        patch["icon"] = parse_optional_text(icon, "icon", max_length=32) or DEFAULT_ROLE_ICON

    for flag in ("is_active", "requires_manual_close"):
        value = pick(payload, flag)
        if not is_missing(value):
            patch[flag] = parse_bool(value, flag)

    permission_ids = pick(payload, "permission_ids")
    if not is_missing(permission_ids):
        permission_ids = _parse_permission_ids(store, permission_ids)

    if patch:
        patch["updated_at"] = utcnow()
        try:
            store.update(CustomRole, {"id": role_id}, patch)
        except IntegrityError:
            store.rollback()
            raise ConflictError(f"A role named '{name}' already exists")

    if not is_missing(permission_ids):
        _replace_permissions(store, role_id, permission_ids)

    store.commit()
    store.refresh(role)
    return role


def delete_role(store: RecordStore, role_id: int) -> None:
    """
    Delete a role and its permission associations.

    Raises ConflictError while any user references the role; nothing is
    removed in that case.
    """
    get_role(store, role_id)

    in_use = store.count(User, {"custom_role_id": role_id})
    if in_use:
        raise ConflictError(
            "Cannot delete a role that is assigned to users",
            users_count=in_use,
        )

    store.delete(RolePermission, {"role_id": role_id})
    store.delete(CustomRole, {"id": role_id})
    store.commit()
