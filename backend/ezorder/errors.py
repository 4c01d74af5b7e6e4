# Overview: Service-layer exception hierarchy mapped to HTTP status codes.


class ServiceError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message, **self.extra}


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""

    status_code = 400


class UnauthenticatedError(ServiceError):
    """Missing or invalid credential."""

    status_code = 401


class PermissionDeniedError(ServiceError):
    """Raised when the principal lacks a required permission."""

    status_code = 403


class ScopeError(PermissionDeniedError):
    """Restaurant outside the principal's reach."""


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., session already open)."""

    status_code = 409


class PermissionStoreUnavailableError(ServiceError):
    """Permission lookup failed; never to be confused with a denial."""

    status_code = 500


class LedgerUnavailableError(ServiceError):
    """Sales/expense aggregation failed or timed out."""

    status_code = 503
