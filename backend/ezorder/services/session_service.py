# Overview: Service-layer operations for session tokens; issue, validate and revoke bearer credentials.

"""
Session Token Management

WHY: Opaque bearer tokens, hashed at rest, time-limited and revocable.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
- Deactivated users lose their sessions on next use
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..errors import NotFoundError, ValidationError
from ..models import SessionToken, User
from ezorder.time_utils import as_utc_naive, utcnow

from .record_store import RecordStore


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); only ever sent to the client."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, so a fast hash is sufficient
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    store: RecordStore,
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a token for the user.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    user = store.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise ValidationError("User account is inactive")

    plaintext_token = generate_token()
    now = utcnow()

    session = store.insert(SessionToken, {
        "user_id": user_id,
        "token_hash": hash_token(plaintext_token),
        "created_at": now,
        "last_used_at": now,
        "expires_at": now + SESSION_ABSOLUTE_TIMEOUT,
        "user_agent": (user_agent or "")[:512] or None,
        "ip_address": ip_address,
        "is_revoked": False,
    })
    store.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(store: RecordStore, token: str) -> SessionContext | None:
    """
    Return the SessionContext for a live token, or None.

    None when the token is unknown, revoked, expired, idle too long, or
    its user has been deactivated. Touches last_used_at on success.
    """
    session = store.find_one(SessionToken, {"token_hash": hash_token(token), "is_revoked": False})
    if not session:
        return None

    now = utcnow()

    if as_utc_naive(session.expires_at) < now:
        return None

    if now - as_utc_naive(session.last_used_at) > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        store.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        store.commit()
        return None

    session.last_used_at = now
    store.commit()

    return SessionContext(user=user, session=session)


def revoke_session(store: RecordStore, token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked."""
    session = store.find_one(SessionToken, {"token_hash": hash_token(token), "is_revoked": False})
    if not session:
        return False

    _revoke(session, reason)
    store.commit()
    return True