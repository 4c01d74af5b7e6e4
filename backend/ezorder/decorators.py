# Overview: Request and permission decorators for API routes.

"""
Route guards.

Order matters: @require_auth must run before the permission guards.

    @bp.post("/open")
    @require_auth
    @require_permissions("caja.abrir")
    def open_route(): ...

require_auth sets on flask.g:
- g.current_user: the authenticated User row
- g.principal: the immutable Principal for this request
- g.session_context / g.token: the bearer session
"""

from functools import wraps

from flask import g, request

from .errors import PermissionDeniedError, PermissionStoreUnavailableError, UnauthenticatedError
from .extensions import db
from .responses import service_error
from .services import permission_service, session_service
from .services.authorization_service import RoleTier, build_resolver, resolve_principal
from .services.record_store import ElevatedRecordStore, ScopedRecordStore
from .services.restaurant_access_service import get_accessible_restaurant_ids


def elevated_store() -> ElevatedRecordStore:
    return ElevatedRecordStore(db.session)


def caller_store():
    """
    Record store for the current principal.

    SuperAdmins get the elevated store; everyone else only sees rows of
    the restaurants they can access.
    """
    allowed = get_accessible_restaurant_ids(elevated_store(), g.principal)
    if allowed is None:
        return elevated_store()
    return ScopedRecordStore(db.session, allowed)


def _is_authenticated() -> bool:
    return hasattr(g, "principal")


def log_denial(event_type: str, reason: str, action: str | None = None, restaurant_id: int | None = None) -> None:
    permission_service.log_security_event(
        elevated_store(),
        user_id=g.principal.id if _is_authenticated() else None,
        event_type=event_type,
        success=False,
        resource=request.path,
        action=action or request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        restaurant_id=restaurant_id,
    )


def require_auth(f):
    """401 unless a live bearer token is presented."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return service_error(UnauthenticatedError("Authentication required"))

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(elevated_store(), token)

        if not context:
            return service_error(UnauthenticatedError("Invalid or expired token"))

        g.current_user = context.user
        g.principal = resolve_principal(context.user)
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permissions(*permission_names: str):
    """
    Allow when the resolver grants ANY of the given permissions.

    Denials answer 403 and are logged; a permission store failure
    answers 500 and is never reported as a denial.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return service_error(UnauthenticatedError("Authentication required"))

            try:
                decision = build_resolver(elevated_store()).authorize(g.principal, permission_names)
            except PermissionStoreUnavailableError as e:
                return service_error(e)

            if not decision.allowed:
                log_denial(
                    "PERMISSION_DENIED",
                    reason=decision.reason,
                    action=",".join(permission_names),
                )
                return service_error(PermissionDeniedError(
                    f"Permission denied: {decision.reason}",
                    required_permissions=list(permission_names),
                ))

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_super_admin(f):
    """SuperAdmin or Admin tier (a custom role flagged is_super_admin counts as SuperAdmin)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return service_error(UnauthenticatedError("Authentication required"))

        if g.principal.role_tier not in (RoleTier.SUPER_ADMIN, RoleTier.ADMIN):
            log_denial("PERMISSION_DENIED", reason="Administrator access required")
            return service_error(PermissionDeniedError("Administrator access required"))

        return f(*args, **kwargs)

    return decorated_function
