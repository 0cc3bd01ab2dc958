"""
Entitlement error taxonomy.

Raised by repositories and services; every service contract handles these at
its own boundary so callers only ever see success or a retryable failure.
"""

from __future__ import annotations

from typing import Any


class EntitlementError(Exception):
    """Base exception for entitlement, payment and referral errors."""

    pass


class ValidationError(EntitlementError):
    """Malformed input. The operation was not attempted."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class InsufficientBalance(ValidationError):
    """Requested amount exceeds the referral balance."""

    def __init__(self, requested: Any, available: Any) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} exceeds available balance {available}",
            field="amount",
        )


class NotFoundError(EntitlementError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class AlreadyFinalized(EntitlementError):
    """Transition attempted on a record that is no longer pending."""

    def __init__(self, entity: str, entity_id: Any, status: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"{entity} {entity_id} already {status}")


class DuplicateGrantError(EntitlementError):
    """Unique-constraint collision on a grant. Means already satisfied."""

    def __init__(self, table: str, key: Any) -> None:
        self.table = table
        self.key = key
        super().__init__(f"Duplicate row in {table} for {key}")


class UpstreamUnavailable(EntitlementError):
    """The persistent store could not be reached. Nothing was committed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Store unavailable: {detail}")


class AccessDenied(EntitlementError):
    """Authenticated caller lacks the entitlement for the requested item."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Access denied: {reason}")
