# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- bcrypt password verification
- Opaque bearer tokens (hashed at rest, 24h absolute / 2h idle)
- Failed logins recorded in security_events
- Self-registration disabled: users come from the CLI
"""

from flask import Blueprint, g, request

from ..decorators import elevated_store, require_auth
from ..errors import ServiceError, UnauthenticatedError, ValidationError
from ..responses import internal_error, json_body, ok, service_error
from ..services import auth_service, permission_service, session_service
from ..services.authorization_service import build_resolver, resolve_principal
from ezorder.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by username or email and issue a bearer token.

    Request body:
    {
        "username": "cajero1",     (or "email")
        "password": "..."
    }
    """
    try:
        data = json_body(request)
        identifier = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not isinstance(identifier, str) or not isinstance(password, str) or not identifier or not password:
            raise ValidationError("username/email and password required")

        store = elevated_store()
        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(store, identifier, password)
        if not user:
            permission_service.log_security_event(
                store,
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action=identifier[:128],
                reason="Invalid credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise UnauthenticatedError("Invalid credentials")

        session, token = session_service.create_session(
            store,
            user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return ok({
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": user.to_dict(),
            "principal": resolve_principal(user).to_dict(),
        }, message="Login successful")

    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Login failed", e)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(elevated_store(), g.token)
        return ok(None, message="Logged out")
    except Exception as e:
        return internal_error("Logout failed", e)


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok({
        "user": g.current_user.to_dict(),
        "principal": g.principal.to_dict(),
    })


@auth_bp.get("/permissions")
@require_auth
def my_permissions_route():
    """
    Permission names held by the caller.

    SuperAdmin/Admin get an empty list (they bypass checks), as do users
    without a custom role.
    """
    try:
        names = build_resolver(elevated_store()).effective_permissions(g.principal)
        return ok({"role_tier": g.principal.role_tier.value, "permissions": names})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Failed to load permissions", e)
