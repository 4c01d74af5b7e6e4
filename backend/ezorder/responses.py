# Overview: JSON response helpers shared by the API routes.

from flask import current_app, jsonify

from .errors import ServiceError, ValidationError


def ok(data=None, status: int = 200, **extra):
    return jsonify({"ok": True, "data": data, **extra}), status


def service_error(exc: ServiceError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(log_message: str, exc: Exception):
    """500 without internals unless EXPOSE_ERROR_DETAILS is enabled."""
    current_app.logger.exception(log_message)
    body = {"ok": False, "message": "Internal server error"}
    if current_app.config.get("EXPOSE_ERROR_DETAILS"):
        body["detail"] = f"{type(exc).__name__}: {exc}"
    return jsonify(body), 500


def json_body(request) -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
