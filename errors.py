"""Classified failures raised by the service layer.

Every error carries a stable ``kind`` and an ``http_status`` so the HTTP
adapter can render it without inspecting messages.
"""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    """Base class for all domain failures."""

    kind = "error"
    http_status = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": self.kind}
        payload.update(self.context)
        return payload


class NotFoundError(LedgerError):
    kind = "not_found"
    http_status = 404


class AccessDeniedError(LedgerError):
    kind = "access_denied"
    http_status = 403


class CapabilityError(AccessDeniedError):
    """The user cannot act in the requested context."""

    kind = "capability"


class QuotaExceededError(LedgerError):
    kind = "quota_exceeded"
    http_status = 403

    def __init__(self, limit: int, current: int):
        super().__init__(
            "property quota exceeded for current plan", limit=limit, current=current
        )
        self.limit = limit
        self.current = current


class InsufficientCreditsError(LedgerError):
    kind = "insufficient_credits"
    http_status = 402

    def __init__(self, property_balance: int, global_balance: int):
        super().__init__(
            "insufficient credits for solvency check",
            property_balance=property_balance,
            global_balance=global_balance,
        )
        self.property_balance = property_balance
        self.global_balance = global_balance


class InvalidStateError(LedgerError):
    kind = "invalid_state"
    http_status = 409

    def __init__(self, message: str, reason: Optional[str] = None, **context):
        super().__init__(message, reason=reason, **context)
        self.reason = reason


class SubscriptionRequiredError(InvalidStateError):
    def __init__(self, user_id: int):
        super().__init__(
            "user has no active subscription", reason="no_active_subscription"
        )
        self.user_id = user_id


class ValidationError(LedgerError):
    kind = "validation"
    http_status = 400


class ConflictError(LedgerError):
    kind = "conflict"
    http_status = 409


class AuthenticationError(LedgerError):
    kind = "authentication"
    http_status = 401


class InfrastructureError(LedgerError):
    """Persistence failure unrelated to the request's validity; retry may help."""

    kind = "infrastructure"
    http_status = 503
