# Overview: Service-layer operations for authorization; decides allow/deny for a principal.

"""
Authorization Resolver

WHY: One place answers "may this principal do X?". Routes never inspect
role tiers or permission strings themselves.

DESIGN PRINCIPLES:
- Pure decision: authorize() never writes; denials are logged by callers
- Fail closed: no custom role means deny
- A permission store failure is NOT a deny; it raises
  PermissionStoreUnavailableError so callers answer 500, not 403
- Role tier is derived once per request and never changes afterwards

Resolution order (first match wins):
    1. SuperAdmin                                   -> allow
    2. Admin                                        -> allow
    3. home restaurant + only "restaurantes.ver"    -> allow
    4. no custom role                               -> deny "no role assigned"
    5. fetch the role's permission names
    6. any required permission granted (wildcards)  -> allow
    7. "restaurantes.ver"/"categorias.ver" required and any "menu.*" held -> allow
    8.                                              -> deny "insufficient permissions"
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..errors import PermissionStoreUnavailableError
from ..models import User, CustomRole, Permission, RolePermission
from ..permissions import VIEW_RESTAURANTS, grants_any, menu_implies_visibility

from .record_store import RecordStore


logger = logging.getLogger(__name__)


class RoleTier(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    CUSTOM_ROLE = "custom_role"
    BASIC = "basic"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor for the lifetime of one request."""
    id: int
    email: str | None
    role_tier: RoleTier
    custom_role_id: int | None = None
    home_restaurant_id: int | None = None
    display_name: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role_tier == RoleTier.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role_tier == RoleTier.ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role_tier": self.role_tier.value,
            "custom_role_id": self.custom_role_id,
            "home_restaurant_id": self.home_restaurant_id,
            "display_name": self.display_name,
        }


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def derive_role_tier(role_tier_id: int | None, custom_role: CustomRole | None) -> RoleTier:
    if role_tier_id == 1 or (custom_role is not None and custom_role.is_super_admin):
        return RoleTier.SUPER_ADMIN
    if role_tier_id == 2:
        return RoleTier.ADMIN
    if custom_role is not None:
        return RoleTier.CUSTOM_ROLE
    return RoleTier.BASIC


def resolve_principal(user: User) -> Principal:
    """Build the request principal from a loaded, active user row."""
    custom_role = user.custom_role if user.custom_role_id else None
    return Principal(
        id=user.id,
        email=user.email,
        role_tier=derive_role_tier(user.role_tier_id, custom_role),
        custom_role_id=user.custom_role_id,
        home_restaurant_id=user.restaurant_id,
        display_name=user.display_name or user.username,
    )


class PermissionStore:
    """Read-only role -> permission names lookup."""

    def __init__(self, store: RecordStore):
        self.store = store

    def permission_names_for_role(self, role_id: int) -> set[str]:
        try:
            rows = (
                self.store.session.query(Permission.name)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .filter(RolePermission.role_id == role_id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception("Permission lookup failed for role %s", role_id)
            raise PermissionStoreUnavailableError("Permission store unavailable") from exc
        return {name for (name,) in rows}


class AuthorizationResolver:
    def __init__(self, permission_store: PermissionStore):
        self.permission_store = permission_store

    def authorize(self, principal: Principal, required: Iterable[str]) -> Decision:
        required = set(required)

        if principal.role_tier == RoleTier.SUPER_ADMIN:
            return ALLOW
        if principal.role_tier == RoleTier.ADMIN:
            return ALLOW

        if principal.home_restaurant_id is not None and required == {VIEW_RESTAURANTS}:
            return ALLOW

        if principal.custom_role_id is None:
            return Decision(False, "no role assigned")

        granted = self.permission_store.permission_names_for_role(principal.custom_role_id)

        if grants_any(granted, required):
            return ALLOW

        if menu_implies_visibility(granted, required):
            return ALLOW

        return Decision(False, "insufficient permissions")

    def effective_permissions(self, principal: Principal) -> list[str]:
        """
        Permission names listed for the caller.

        SuperAdmin/Admin bypass checks, so they get an empty list, as do
        principals without a custom role.
        """
        if principal.role_tier in (RoleTier.SUPER_ADMIN, RoleTier.ADMIN):
            return []
        if principal.custom_role_id is None:
            return []
        return sorted(self.permission_store.permission_names_for_role(principal.custom_role_id))


def build_resolver(store: RecordStore) -> AuthorizationResolver:
    return AuthorizationResolver(PermissionStore(store))
