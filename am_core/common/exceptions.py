# am_core/common/exceptions.py
"""
Domain error taxonomy.

Every error is an APIException so it flows through the global DRF handler and
lands in the standard envelope with its own code. Services raise these
directly; the transaction boundary (common.db.atomic_operation) rolls back and
re-raises them unchanged.
"""
from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.exceptions import APIException


class DomainError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "domain_error"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or str(self.default_detail)
        self.details = {k: v for k, v in details.items() if v is not None}
        super().__init__(detail={"detail": self.message, **self.details}, code=self.default_code)

    def __str__(self) -> str:
        return self.message


class ValidationError(DomainError):
    """Malformed or missing field. `field` names the offending input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"

    def __init__(self, field: str | None, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason, field=field)


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class InvalidStateError(DomainError):
    """Illegal transition for the entity's current status. Not retryable."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid state transition."
    default_code = "invalid_state"

    def __init__(self, message: str, *, current: str | None = None, attempted: str | None = None):
        self.current = current
        self.attempted = attempted
        super().__init__(message, current_status=current, attempted=attempted)


class ConflictError(DomainError):
    """Concurrent mutation on the same asset. Caller may retry."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Concurrent modification, retry the request."
    default_code = "conflict"


class PersistenceError(DomainError):
    """Storage unavailable or timed out. Caller retries with backoff."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage is temporarily unavailable."
    default_code = "persistence_error"


class AuditChainBrokenError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Audit chain verification failed."
    default_code = "audit_chain_broken"


class ImmutabilityViolationError(DomainError):
    """Attempt to update or delete an append-only record."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Record is append-only."
    default_code = "immutable_record"
