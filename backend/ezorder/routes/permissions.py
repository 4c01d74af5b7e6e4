# Overview: Flask API route for ad-hoc permission checks by the caller.

from flask import Blueprint, g, request

from ..decorators import elevated_store, require_auth
from ..errors import ServiceError, ValidationError
from ..responses import internal_error, json_body, ok, service_error
from ..services.authorization_service import build_resolver


permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


@permissions_bp.post("/check")
@require_auth
def check_permission_route():
    """
    Ask whether the caller holds any of the given permissions.

    Request body: {"permissions": ["caja.abrir"]} or {"permission": "caja.abrir"}
    """
    try:
        data = json_body(request)
        required = data.get("permissions")
        if required is None and data.get("permission") is not None:
            required = [data.get("permission")]
        if not isinstance(required, list) or not required or not all(isinstance(p, str) and p for p in required):
            raise ValidationError("permissions must be a non-empty list of names")

        decision = build_resolver(elevated_store()).authorize(g.principal, required)
        return ok({"allowed": decision.allowed, "reason": decision.reason, "permissions": required})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Permission check failed", e)
