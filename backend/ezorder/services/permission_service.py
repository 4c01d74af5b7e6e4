# Overview: Service-layer operations for permission; catalog seeding and security event logging.

"""
Permission Catalog and Security Event Logging

WHY: Permissions must exist in the database before roles can reference
them, and every denial leaves an audit trail.

DESIGN PRINCIPLES:
- Log denials only: grants are not logged
- Seeding is idempotent: safe to run on every deploy
- Audit writes never break the request that triggered them
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..models import Permission, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, group_permissions
from ezorder.time_utils import utcnow

from .record_store import RecordStore


logger = logging.getLogger(__name__)


def log_security_event(
    store: RecordStore,
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    restaurant_id: int | None = None,
) -> SecurityEvent | None:
    """
    Append a row to the security audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - RESTAURANT_ACCESS_DENIED
    - LOGIN_FAILED
    - LOGOUT
    """
    try:
        event = store.insert(SecurityEvent, {
            "user_id": user_id,
            "restaurant_id": restaurant_id,
            "event_type": event_type,
            "resource": resource,
            "action": action,
            "success": success,
            "reason": reason,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "occurred_at": utcnow(),
        })
        store.commit()
        return event
    except SQLAlchemyError:
        store.rollback()
        logger.exception("Failed to record security event %s", event_type)
        return None


def initialize_permissions(store: RecordStore) -> int:
    """
    Insert every permission in PERMISSION_DEFINITIONS that is missing.

    Existing rows get their description/category/kind refreshed.
    Returns the number of permissions created.
    """
    created_count = 0

    for name, description, category, kind in PERMISSION_DEFINITIONS:
        existing = store.find_one(Permission, {"name": name})
        if existing:
            existing.description = description
            existing.category = category
            existing.kind = kind
            continue

        store.insert(Permission, {
            "name": name,
            "description": description,
            "category": category,
            "kind": kind,
        })
        created_count += 1

    store.commit()
    return created_count


def list_permissions(store: RecordStore) -> list[dict]:
    return [p.to_dict() for p in store.find(Permission, order_by=["category", "name"])]


def list_permissions_grouped(store: RecordStore) -> dict:
    """Catalog grouped by kind, then category (see group_permissions)."""
    return group_permissions(list_permissions(store))
