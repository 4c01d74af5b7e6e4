# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, ValidationError
from ..models import User, Restaurant, UserRestaurant, CustomRole
from ezorder.time_utils import utcnow

from .record_store import RecordStore


logger = logging.getLogger(__name__)

ROLE_TIER_SUPER_ADMIN = 1
ROLE_TIER_ADMIN = 2
ROLE_TIER_BASIC = 3


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if password matches hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def authenticate(store: RecordStore, identifier: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the user on success, None on bad credentials or inactive account.
    """
    user = store.find_one(User, {"username": identifier}) or store.find_one(User, {"email": identifier})
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    store.commit()
    return user


def create_user(
    store: RecordStore,
    *,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
    role_tier_id: int = ROLE_TIER_BASIC,
    custom_role_id: int | None = None,
    restaurant_id: int | None = None,
) -> User:
    if role_tier_id not in (ROLE_TIER_SUPER_ADMIN, ROLE_TIER_ADMIN, ROLE_TIER_BASIC):
        raise ValidationError("role_tier_id must be 1, 2 or 3")

    if store.find_one(User, {"username": username}):
        raise ConflictError(f"Username '{username}' already exists")
    if store.find_one(User, {"email": email}):
        raise ConflictError(f"Email '{email}' already in use")

    if custom_role_id is not None and not store.get(CustomRole, custom_role_id):
        raise ValidationError(f"Custom role {custom_role_id} not found")
    if restaurant_id is not None and not store.get(Restaurant, restaurant_id):
        raise ValidationError(f"Restaurant {restaurant_id} not found")

    user = store.insert(User, {
        "username": username,
        "email": email,
        "display_name": display_name or username,
        "password_hash": hash_password(password),
        "role_tier_id": role_tier_id,
        "custom_role_id": custom_role_id,
        "restaurant_id": restaurant_id,
        "is_active": True,
    })
    store.commit()
    return user


def add_restaurant_membership(store: RecordStore, user_id: int, restaurant_id: int, *, is_owner: bool = False) -> UserRestaurant:
    existing = store.find_one(UserRestaurant, {"user_id": user_id, "restaurant_id": restaurant_id})
    if existing:
        return existing
    membership = store.insert(UserRestaurant, {
        "user_id": user_id,
        "restaurant_id": restaurant_id,
        "is_owner": is_owner,
    })
    store.commit()
    return membership


def get_display_names(store: RecordStore, user_ids) -> dict[int, str | None]:
    """
    Batch id -> display name lookup for presentation only.

    Lookup failures degrade to an empty mapping; callers render null names.
    """
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    try:
        users = store.find(User, {"id__in": ids})
    except SQLAlchemyError:
        logger.exception("Display name lookup failed for users %s", sorted(ids))
        return {}
    return {u.id: (u.display_name or u.username) for u in users}


def get_restaurant_names(store: RecordStore, restaurant_ids) -> dict[int, str]:
    ids = {rid for rid in restaurant_ids if rid is not None}
    if not ids:
        return {}
    try:
        restaurants = store.find(Restaurant, {"id__in": ids})
    except SQLAlchemyError:
        logger.exception("Restaurant name lookup failed for %s", sorted(ids))
        return {}
    return {r.id: r.name for r in restaurants}
