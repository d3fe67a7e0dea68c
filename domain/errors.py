"""
Domain: error taxonomy for checkout, undo and bulk operations.

Every error carries:
- status_code: the HTTP-class status it maps to at the API boundary
- error: a stable, human-readable label
- details: structured data the caller can use to self-correct
- correlation_id: the operation's identifier for operator tracing

Fault classes:
- Validation faults (400): malformed or out-of-range input, safe to retry after correction
- State faults (404/409): deterministic rejections, retrying will not help
- Integrity faults (500): referenced data is missing, the transaction was rolled back
- Persistence faults (500): unexpected storage error, the transaction was rolled back

Advisory faults (market lookup, sales history, refresh scheduling) have no class
here on purpose: they are logged and never propagate.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional


class DeskError(Exception):
    """Base class for errors surfaced to callers of the desk services."""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Mapping[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = dict(details) if details else None
        self.correlation_id = correlation_id


# ----------------------------------------------------------------------------
# Validation faults
# ----------------------------------------------------------------------------

class ValidationFault(DeskError):
    status_code = 400
    error = "Invalid input"


class EmptyCartError(ValidationFault):
    error = "No items in cart to process"


class InsufficientPaymentError(ValidationFault):
    error = "Payment amount insufficient"

    def __init__(
        self,
        required: Decimal,
        provided: Decimal,
        *,
        correlation_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Payment of {provided} does not cover the cart total of {required}",
            details={"required": required, "provided": provided},
            correlation_id=correlation_id,
        )
        self.required = required
        self.provided = provided


class BulkValidationError(ValidationFault):
    pass


# ----------------------------------------------------------------------------
# State faults
# ----------------------------------------------------------------------------

class NotFoundError(DeskError):
    status_code = 404
    error = "Not found"


class SessionNotFoundError(NotFoundError):
    error = "Session not found"


class PurchaseNotFoundError(NotFoundError):
    error = "Purchased asset not found or not owned by user"


class ConsignmentNotFoundError(NotFoundError):
    error = "Consignment not found"


class AlreadyProcessedError(DeskError):
    """The session was already checked out; repeating finalize is rejected."""

    status_code = 409
    error = "Session already processed"


# ----------------------------------------------------------------------------
# Integrity and persistence faults (always rolled back)
# ----------------------------------------------------------------------------

class AssetNotFoundError(DeskError):
    error = "Canonical asset not found"


class TransactionFailureError(DeskError):
    error = "Transaction failed"


__all__ = [
    "DeskError",
    "ValidationFault",
    "EmptyCartError",
    "InsufficientPaymentError",
    "BulkValidationError",
    "NotFoundError",
    "SessionNotFoundError",
    "PurchaseNotFoundError",
    "ConsignmentNotFoundError",
    "AlreadyProcessedError",
    "AssetNotFoundError",
    "TransactionFailureError",
]
