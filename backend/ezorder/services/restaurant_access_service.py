# Overview: Service-layer operations for restaurant access; resolves which restaurants a principal may touch.

"""
Restaurant scope rules:

    SuperAdmin  -> every restaurant
    Admin       -> restaurants in their membership set
    others      -> membership set plus their home restaurant
"""

from ..errors import ScopeError
from ..models import UserRestaurant

from .authorization_service import Principal, RoleTier
from .record_store import RecordStore


def get_membership_restaurant_ids(store: RecordStore, user_id: int) -> set[int]:
    rows = store.find(UserRestaurant, {"user_id": user_id})
    return {row.restaurant_id for row in rows}


def get_accessible_restaurant_ids(store: RecordStore, principal: Principal) -> set[int] | None:
    """Returns None when the principal is unrestricted."""
    if principal.role_tier == RoleTier.SUPER_ADMIN:
        return None

    ids = get_membership_restaurant_ids(store, principal.id)
    if principal.role_tier != RoleTier.ADMIN and principal.home_restaurant_id is not None:
        ids.add(principal.home_restaurant_id)
    return ids


def can_access_restaurant(store: RecordStore, principal: Principal, restaurant_id: int | None) -> bool:
    if restaurant_id is None:
        return False
    allowed = get_accessible_restaurant_ids(store, principal)
    return allowed is None or restaurant_id in allowed


def require_restaurant_access(store: RecordStore, principal: Principal, restaurant_id: int) -> None:
    if not can_access_restaurant(store, principal, restaurant_id):
        raise ScopeError("You do not have access to this restaurant", restaurant_id=restaurant_id)
