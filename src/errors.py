"""
Error taxonomy for resource reconciliation.

Validation errors are raised before any remote call is made. Transport
errors wrap failures of the remote API call itself. A missing remote object
is reported as NotFoundError so callers can tell it apart from other
transport failures.
"""

from typing import List, Optional


class ReconcilerError(Exception):
    """Base class for all reconciliation errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ReconcilerError):
    """Raised when a plan or identifier violates the attribute policy."""

    def __init__(self, message: str, attribute: Optional[str] = None):
        super().__init__(message)
        self.attribute = attribute


class PlanValidationError(ValidationError):
    """Raised when a plan has one or more policy violations."""

    def __init__(self, resource_type: str, errors: List[ValidationError]):
        self.resource_type = resource_type
        self.errors = errors
        details = "; ".join(e.message for e in errors)
        super().__init__(f"Invalid plan for {resource_type}: {details}")


class InvalidIdentifierError(ValidationError):
    """Raised when a composite identifier cannot be decoded."""


class TransportError(ReconcilerError):
    """Raised when a call to the remote API fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"HTTP {self.status}: {self.message}"
        return self.message


class NotFoundError(TransportError):
    """Raised when the remote API reports that an object does not exist."""

    def __init__(self, message: str, status: Optional[int] = 404):
        super().__init__(message, status=status)
