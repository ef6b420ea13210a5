"""
Service Error Taxonomy

Every rejected operation raises one of these. The HTTP layer maps
``status_code`` straight onto the response, so a policy denial can never
turn into a generic server error on its way out.

Kinds:
    - forbidden: policy denied the action (403)
    - not_found: entity absent (404)
    - invalid_transition: illegal status change (422)
    - invalid_argument: malformed input (422)
    - conflict: concurrent modification detected (409)
    - internal: unexpected or storage fault (500)
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for every error surfaced by the service layer."""

    kind: str = "internal"
    status_code: int = 500

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": False,
            "error": self.kind,
            "detail": self.message,
        }


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class InvalidTransitionError(ServiceError):
    kind = "invalid_transition"
    status_code = 422


class InvalidArgumentError(ServiceError):
    kind = "invalid_argument"
    status_code = 422


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 409


class InternalError(ServiceError):
    kind = "internal"
    status_code = 500


class TransientStorageError(ServiceError):
    """
    Storage fault worth one more attempt (lock timeout, dropped connection).

    Raised by the repositories and consumed by ``run_atomic``; callers
    outside the service layer only ever see the ``InternalError`` it turns
    into once retries are exhausted.
    """
    kind = "internal"
    status_code = 500
