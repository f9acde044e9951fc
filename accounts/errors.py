"""
Error taxonomy for account, token and saved-book operations.

Each error carries the HTTP status the API layer renders it with, so the
transport only needs one exception handler for the whole hierarchy.
"""

from typing import Dict, Optional


class AccountError(Exception):
    """Base class for request-scoped account failures."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class Invalid(AccountError):
    """Malformed input. Always caller-correctable; the message is shown as-is."""

    status_code = 400
    default_message = "Invalid input"


class Conflict(AccountError):
    """Uniqueness violation on registration."""

    status_code = 409
    default_message = "An account with these details already exists."

    def __init__(self, message: Optional[str] = None):
        # Never say which field collided.
        super().__init__(self.default_message)


class Unauthenticated(AccountError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    default_message = "Authentication required"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class NotFound(AccountError):
    """Reserved for lookups outside the saved-book paths."""

    status_code = 404
    default_message = "Not found"


# Shared by every login failure so unknown identifiers and bad passwords look the same.
INVALID_CREDENTIALS = "Incorrect credentials"
