# Overview: Flask API routes for custom role management; parses input and returns JSON responses.

"""
Custom Role API Routes

SECURITY:
- roles.ver for reads
- roles.crear / roles.editar / roles.eliminar plus administrator access for writes
"""

from flask import Blueprint, g, request

from ..decorators import elevated_store, require_auth, require_permissions, require_super_admin
from ..errors import ServiceError
from ..responses import internal_error, json_body, ok, service_error
from ..services import permission_service, role_service


roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")


@roles_bp.get("/permissions")
@require_auth
@require_permissions("roles.ver")
def list_permissions_route():
    """Permission catalog grouped by kind, then category."""
    try:
        return ok(permission_service.list_permissions_grouped(elevated_store()))
    except Exception as e:
        return internal_error("Failed to list permissions", e)


@roles_bp.get("")
@roles_bp.get("/")
@require_auth
@require_permissions("roles.ver")
def list_roles_route():
    try:
        include_inactive = request.args.get("include_inactive", "true").lower() != "false"
        roles = role_service.list_roles(elevated_store(), include_inactive=include_inactive)
        result = []
        for role in roles:
            data = role.to_dict(include_permissions=True)
            data["users_count"] = len(role.users)
            result.append(data)
        return ok(result)
    except Exception as e:
        return internal_error("Failed to list roles", e)


@roles_bp.get("/<int:role_id>")
@require_auth
@require_permissions("roles.ver")
def get_role_route(role_id: int):
    try:
        role = role_service.get_role(elevated_store(), role_id)
        return ok(role.to_dict(include_permissions=True))
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Failed to load role", e)


@roles_bp.post("")
@roles_bp.post("/")
@require_auth
@require_permissions("roles.crear")
@require_super_admin
def create_role_route():
    """
    Create a custom role.

    Request body:
    {
        "name": "Cajero",
        "description": "...",              (optional)
        "color": "#3B82F6",                (optional)
        "icon": "user",                    (optional)
        "permission_ids": [1, 2, 3],
        "is_super_admin": false,           (optional)
        "requires_manual_close": false     (optional)
    }
    """
    try:
        role = role_service.create_role(
            elevated_store(),
            json_body(request),
            created_by_user_id=g.principal.id,
        )
        return ok(role.to_dict(include_permissions=True), 201, message="Role created")
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Failed to create role", e)


@roles_bp.put("/<int:role_id>")
@require_auth
@require_permissions("roles.editar")
@require_super_admin
def update_role_route(role_id: int):
    """Partial update; permission_ids, when present, replaces the whole set."""
    try:
        role = role_service.update_role(elevated_store(), role_id, json_body(request))
        return ok(role.to_dict(include_permissions=True), message="Role updated")
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Failed to update role", e)


@roles_bp.delete("/<int:role_id>")
@require_auth
@require_permissions("roles.eliminar")
@require_super_admin
def delete_role_route(role_id: int):
    try:
        role_service.delete_role(elevated_store(), role_id)
        return ok(None, message="Role deleted")
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return internal_error("Failed to delete role", e)
