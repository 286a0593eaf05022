"""
Typed failures raised by the ledger services.

Each error carries the HTTP status it is rendered with by the exception
handler registered in ``groupledger.main``.
"""
from fastapi import status


class LedgerError(Exception):
    """Base class for all ledger failures."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or invariant-violating input."""
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(LedgerError):
    """Caller is authenticated but not allowed to perform the action."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LedgerError):
    """Referenced group, entry or settlement is absent or soft-deleted."""
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(LedgerError):
    """Id generation kept colliding with existing rows."""
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(LedgerError):
    """Illegal settlement status change."""
    status_code = status.HTTP_409_CONFLICT
