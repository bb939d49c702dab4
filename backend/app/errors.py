"""Service error taxonomy.

Every failure the core reports on purpose is a ServiceError subclass with a
stable ``code``. The API layer maps them onto HTTP responses; callers inside
the process can branch on the type.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for expected service failures."""

    code = "SERVICE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        return {"code": self.code, "message": self.message}


class InvalidArgumentError(ServiceError):
    """Bad input rejected before any I/O. Never retried."""

    code = "INVALID_ARGUMENT"


class AuthorizationError(ServiceError):
    """Requester identity does not match the resource owner."""

    code = "UNAUTHORIZED"


class NotFoundError(ServiceError):
    """Referenced document or session does not exist."""

    code = "NOT_FOUND"


class ConflictError(ServiceError):
    """Write would violate a uniqueness invariant."""

    code = "CONFLICT"


class TransientStoreError(ServiceError):
    """Backing store or external lookup unavailable."""

    code = "STORE_UNAVAILABLE"


class QuotaExceededError(ServiceError):
    """Plan limit reached for a billed resource.

    Carries the plan and the numeric limit so callers can render an upgrade
    prompt.
    """

    code = "QUOTA_EXCEEDED"

    def __init__(self, *, plan: str, limit: int, resource: str) -> None:
        noun = "documents" if resource == "documents" else "monthly sessions"
        super().__init__(
            f"You have reached the maximum number of {noun} allowed for your "
            f"{plan} plan ({limit}). Please upgrade to continue."
        )
        self.plan = plan
        self.limit = limit
        self.resource = resource

    def to_dict(self) -> dict[str, Any]:
        """Serialize with plan details for the upgrade prompt."""
        body = super().to_dict()
        body.update(
            {
                "plan": self.plan,
                "limit": self.limit,
                "resource": self.resource,
                "upgrade_required": True,
            }
        )
        return body
