"""
Error taxonomy and the translation of database errors into API errors.

Services raise the BillingError subclasses below for rules they enforce
themselves and let SQLAlchemy errors propagate; both are rendered into the
uniform JSON envelope by the handlers registered in app.main.
"""
from typing import Any, Dict, Optional, Tuple

from fastapi import status
from sqlalchemy.exc import DBAPIError, IntegrityError, DataError


class BillingError(Exception):
    """Base class for errors raised deliberately by the application."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BillingError):
    """Missing or malformed input, detected before touching the database."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(BillingError):
    """Missing, invalid or expired credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(BillingError):
    """Authenticated, but the role does not allow the operation."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class StateConflictError(BillingError):
    """
    Business-rule violation against the current state of a record, e.g.
    editing a FINALIZED bill or paying more than the outstanding balance.
    """
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(BillingError):
    """Uniqueness conflict detected by the application."""
    status_code = status.HTTP_409_CONFLICT


# PostgreSQL SQLSTATE codes -> (HTTP status, message)
SQLSTATE_ERRORS: Dict[str, Tuple[int, str]] = {
    "23505": (status.HTTP_409_CONFLICT, "Duplicate entry. Record already exists."),
    "23503": (status.HTTP_400_BAD_REQUEST, "Invalid reference. Related record not found."),
    "23502": (status.HTTP_400_BAD_REQUEST, "Required field is missing."),
    "22P02": (status.HTTP_400_BAD_REQUEST, "Invalid data format."),
}

# SQLite reports constraint failures only through the message text
SQLITE_MESSAGE_CODES = (
    ("UNIQUE constraint failed", "23505"),
    ("FOREIGN KEY constraint failed", "23503"),
    ("NOT NULL constraint failed", "23502"),
)

GENERIC_DATABASE_ERROR = (status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error occurred.")


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code

    text = str(orig) if orig is not None else str(exc)
    for fragment, mapped in SQLITE_MESSAGE_CODES:
        if fragment in text:
            return mapped

    if isinstance(exc, DataError):
        return "22P02"
    return None


def translate_database_error(exc: DBAPIError) -> Tuple[int, str]:
    """Map a database error to (HTTP status, user-facing message)."""
    code = _sqlstate(exc)
    if code in SQLSTATE_ERRORS:
        return SQLSTATE_ERRORS[code]
    if isinstance(exc, IntegrityError):
        # Some other constraint (e.g. CHECK) rejected the row
        return status.HTTP_400_BAD_REQUEST, "Invalid data. A database constraint was violated."
    return GENERIC_DATABASE_ERROR
