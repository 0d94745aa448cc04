"""
Ledger Error Taxonomy

These are the only errors the ledger surfaces to its callers.
Storage-specific exceptions are translated into them at the
orchestrator boundary, so callers never depend on the backend.

Mapping for an API layer:
- ValidationError   -> rejected request (400)
- NotFoundError     -> not found (404)
- ConflictError     -> conflict (409)
- DependencyError   -> service unavailable (503), caller may retry
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Malformed input: missing field, non-positive amount, bad month index."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """Referenced month, entry, category or template does not exist."""
    pass


class ConflictError(LedgerError):
    """A month already exists for the (user, year, month) triple."""
    pass


class ConcurrentModificationError(ConflictError):
    """The month changed between read and write; nothing was applied."""
    pass


class DependencyError(LedgerError):
    """Backing store unreachable or a write failed."""
    pass
