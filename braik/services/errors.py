"""Typed errors raised by the permission, billing and resource services."""

from __future__ import annotations

from typing import Any


class BraikError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 400
    code = "error"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message()
        self.details = details
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Request failed"

    def to_dict(self) -> dict[str, Any]:
        payload = {"code": self.code, "message": self.message}
        payload.update(self.details)
        return {"error": payload}


class Unauthenticated(BraikError):
    status_code = 401
    code = "unauthenticated"

    def default_message(self) -> str:
        return "Authentication required"


class MembershipNotFound(BraikError):
    """The actor has no membership on the team."""

    status_code = 403
    code = "membership_not_found"

    def default_message(self) -> str:
        return "You are not a member of this team"


class PermissionDenied(BraikError):
    """A role, scope or ownership check failed."""

    status_code = 403
    code = "permission_denied"

    def __init__(self, reason: str, **details: Any):
        self.reason = reason
        super().__init__(reason, **details)


class BillingRestricted(BraikError):
    """The billing state of the team vetoed the action."""

    status_code = 402
    code = "billing_restriction"

    def __init__(self, status: str, action: str, reason: str | None = None):
        self.status = status
        self.action = action
        self.reason = reason or f"Account is {status}; '{action}' is not available"
        super().__init__(self.reason, status=status, action=action)


class ResourceNotFound(BraikError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str = "Resource", message: str | None = None):
        self.entity = entity
        super().__init__(message or f"{entity} not found", entity=entity)


class ValidationError(BraikError):
    status_code = 400
    code = "validation_error"

    def default_message(self) -> str:
        return "Invalid input"


class InvalidStateTransition(BraikError):
    status_code = 409
    code = "invalid_state"

    def default_message(self) -> str:
        return "Invalid state transition"


__all__ = [
    "BraikError",
    "Unauthenticated",
    "MembershipNotFound",
    "PermissionDenied",
    "BillingRestricted",
    "ResourceNotFound",
    "ValidationError",
    "InvalidStateTransition",
]
