# Overview: Domain error taxonomy shared by services, routes, and CLI.

"""
Error taxonomy

- ValidationError:    malformed or out-of-range input (400)
- NotFoundError:      unknown order / stock item id (404)
- ConflictError:      duplicate order number after bounded retries (409)
- PreconditionError:  disallowed status transition or missing association (409)
- InventoryInvariantError: a valuation divide-by-zero reached the caller.
  The restock guard makes this unreachable; if raised it is fatal.
"""


class CateringError(Exception):
    """Base for expected, caller-recoverable domain errors."""

    status_code = 400

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(CateringError, ValueError):
    """400-level input problem."""

    status_code = 400


class NotFoundError(CateringError, LookupError):
    """404-level unknown entity."""

    status_code = 404


class ConflictError(CateringError):
    """409-level uniqueness conflict (e.g., duplicate order number)."""

    status_code = 409


class PreconditionError(CateringError):
    """
    Raised when a workflow rule forbids the requested change.

    This is a domain error, not a technical error: the order exists and the
    input is well formed, but its current state does not admit the change.
    """

    status_code = 409


class InventoryInvariantError(ArithmeticError):
    """Valuation arithmetic produced an undefined result."""
