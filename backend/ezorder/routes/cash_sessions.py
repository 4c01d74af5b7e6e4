# Overview: Flask API routes for cash session (caja) operations; parses input and returns JSON responses.

"""
Cash Session API Routes

DESIGN:
- Lifecycle: open -> adjust* -> close (irreversible)
- Close returns the reconciliation report next to the closed session
- Listing endpoints are paginated and newest first

SECURITY:
- caja.ver for reads, caja.abrir / caja.cerrar / caja.registrar_ingresos for writes
- Cross-restaurant listings also require administrator access
- Non-SuperAdmins work through a record store scoped to their restaurants
"""

from flask import Blueprint, g, request

from ..decorators import caller_store, log_denial, require_auth, require_permissions, require_super_admin
from ..errors import ScopeError, ServiceError, ValidationError
from ..responses import internal_error, json_body, ok, service_error
from ..services.cash_session_service import CashSessionManager
from ..validation import parse_int
from ezorder.time_utils import parse_business_date


cash_sessions_bp = Blueprint("cash_sessions", __name__, url_prefix="/api/cash-sessions")


def _manager() -> CashSessionManager:
    return CashSessionManager(caller_store())


def _date_arg(name: str):
    try:
        return parse_business_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")


def _listing_args() -> dict:
    return {
        "page": request.args.get("page"),
        "limit": request.args.get("limit"),
        "state": request.args.get("state"),
        "date_from": _date_arg("date_from"),
        "date_to": _date_arg("date_to"),
    }


def _fail(e: ServiceError, restaurant_id: int | None = None):
    if isinstance(e, ScopeError):
        log_denial("RESTAURANT_ACCESS_DENIED", reason=e.message, restaurant_id=restaurant_id)
    return service_error(e)


# =============================================================================
# CROSS-RESTAURANT LISTINGS
# =============================================================================

@cash_sessions_bp.get("/all")
@require_auth
@require_permissions("caja.ver")
@require_super_admin
def list_all_route():
    """
    All cash sessions the caller can reach, newest first.

    Query: restaurant_id, page, limit, state (open|closed), date_from, date_to
    """
    restaurant_id = None
    try:
        restaurant_id = parse_int(request.args.get("restaurant_id"), "restaurant_id", required=False)
        result = _manager().list_all(g.principal, restaurant_id=restaurant_id, **_listing_args())
        return ok(result["sessions"], pagination=result["pagination"])
    except ServiceError as e:
        return _fail(e, restaurant_id)
    except Exception as e:
        return internal_error("Failed to list cash sessions", e)


@cash_sessions_bp.get("/open")
@require_auth
@require_permissions("caja.ver")
@require_super_admin
def list_open_route():
    """Every currently open cash session the caller can reach."""
    restaurant_id = None
    try:
        restaurant_id = parse_int(request.args.get("restaurant_id"), "restaurant_id", required=False)
        return ok(_manager().list_open(g.principal, restaurant_id=restaurant_id))
    except ServiceError as e:
        return _fail(e, restaurant_id)
    except Exception as e:
        return internal_error("Failed to list open cash sessions", e)


# =============================================================================
# PER-RESTAURANT READS
# =============================================================================

@cash_sessions_bp.get("/restaurants/<int:restaurant_id>")
@require_auth
@require_permissions("caja.ver")
def list_for_restaurant_route(restaurant_id: int):
    try:
        result = _manager().list_for_restaurant(g.principal, restaurant_id, **_listing_args())
        return ok(result["sessions"], pagination=result["pagination"])
    except ServiceError as e:
        return _fail(e, restaurant_id)
    except Exception as e:
        return internal_error("Failed to list cash sessions", e)


@cash_sessions_bp.get("/restaurants/<int:restaurant_id>/current")
@require_auth
@require_permissions("caja.ver")
def current_session_route(restaurant_id: int):
    """The open session for the restaurant, or data: null."""
    try:
        manager = _manager()
        session = manager.get_current(g.principal, restaurant_id)
        if not session:
            return ok(None, message="No open cash session")
        return ok(manager.serialize_one(session))
    except ServiceError as e:
        return _fail(e, restaurant_id)
    except Exception as e:
        return internal_error("Failed to load current cash session", e)


@cash_sessions_bp.get("/restaurants/<int:restaurant_id>/summary")
@require_auth
@require_permissions("caja.ver")
def summary_route(restaurant_id: int):
    """Day summary. Query: date (YYYY-MM-DD, defaults to today)."""
    try:
        day = _date_arg("date")
        return ok(_manager().summary(g.principal, restaurant_id, day))
    except ServiceError as e:
        return _fail(e, restaurant_id)
    except Exception as e:
        return internal_error("Failed to build cash summary", e)


@cash_sessions_bp.get("/<int:session_id>")
@require_auth
@require_permissions("caja.ver")
def get_session_route(session_id: int):
    try:
        manager = _manager()
        return ok(manager.serialize_one(manager.get_session(g.principal, session_id)))
    except ServiceError as e:
        return _fail(e)
    except Exception as e:
        return internal_error("Failed to load cash session", e)


# =============================================================================
# LIFECYCLE
# =============================================================================

@cash_sessions_bp.post("/open")
@require_auth
@require_permissions("caja.abrir")
def open_session_route():
    """
    Open a cash session.

    Request body:
    {
        "restaurant_id": 1,
        "opening_balance": "100.00",
        "notes": "Morning shift"        (optional)
    }

    409 carries existing_session when one is already open.
    """
    data = {}
    try:
        data = json_body(request)
        manager = _manager()
        session, warnings = manager.open_session(
            g.principal,
            data.get("restaurant_id"),
            data.get("opening_balance"),
            data.get("notes"),
        )
        return ok(
            manager.serialize_one(session),
            201,
            message="Cash session opened",
            warnings=warnings,
        )
    except ServiceError as e:
        return _fail(e, data.get("restaurant_id") if isinstance(data.get("restaurant_id"), int) else None)
    except Exception as e:
        return internal_error("Failed to open cash session", e)


@cash_sessions_bp.patch("/<int:session_id>")
@require_auth
@require_permissions("caja.registrar_ingresos")
def adjust_session_route(session_id: int):
    """
    Partial update while open.

    Request body (any subset):
    {
        "accrued_other_income": "20.00",
        "accrued_other_expense": "5.00",
        "notes": "..."
    }
    """
    try:
        manager = _manager()
        session = manager.adjust_session(g.principal, session_id, json_body(request))
        return ok(manager.serialize_one(session), message="Cash session updated")
    except ServiceError as e:
        return _fail(e)
    except Exception as e:
        return internal_error("Failed to update cash session", e)


@cash_sessions_bp.post("/<int:session_id>/close")
@require_auth
@require_permissions("caja.cerrar")
def close_session_route(session_id: int):
    """
    Close and reconcile.

    Request body:
    {
        "declared_cash": "370.00",
        "declared_pos": "120.00",             (optional)
        "declared_transfer": "0.00",          (optional)
        "declared_other_expense": "0.00",     (optional)
        "declared_cash_sales": "250.00",      (optional)
        "notes": "..."                        (optional)
    }

    Undeclared channels are left out of the verdict.
    """
    try:
        manager = _manager()
        session, report = manager.close_session(g.principal, session_id, json_body(request))
        return ok(
            {"session": manager.serialize_one(session), "reconciliation": report},
            message=report["message"],
        )
    except ServiceError as e:
        return _fail(e)
    except Exception as e:
        return internal_error("Failed to close cash session", e)
