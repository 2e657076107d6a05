# printshop/services/errors.py
from __future__ import annotations

from typing import Any, Optional


# ============================================================
# Errors
# ============================================================
class WorkflowError(RuntimeError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Malformed or missing input. Never retried."""
    status_code = 422


class NotFoundError(WorkflowError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None):
        msg = f"{entity} not found" if entity_id is None else f"{entity} #{entity_id} not found"
        super().__init__(msg)
        self.entity = entity
        self.entity_id = entity_id


class InvariantViolation(WorkflowError):
    """A business rule would be broken; surfaced as-is, never auto-corrected."""
    status_code = 409


class InvalidTransition(InvariantViolation):

    def __init__(self, from_status: Any, to_status: Any):
        super().__init__(
            f"Invalid status transition from {_v(from_status)} to {_v(to_status)}")
        self.from_status = _v(from_status)
        self.to_status = _v(to_status)


class DuplicateInvoiceError(InvariantViolation):

    def __init__(self, existing: Any):
        number = getattr(existing, "invoice_number", None)
        super().__init__(
            f"An invoice already exists for this order. Invoice #: {number}")
        self.existing = existing


class AuthorizationError(InvariantViolation):
    """Actor lacks the role the operation needs."""
    status_code = 403


class DiscountAuthorizationError(AuthorizationError):
    pass


class CreditLimitError(InvariantViolation):
    pass


def _v(x: Optional[Any]) -> str:
    if x is None:
        return "NONE"
    return str(getattr(x, "value", x))
