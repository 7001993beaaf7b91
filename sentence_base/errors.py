"""
Failures raised by the core operations.

Every error carries an HTTP-style status code and a list of human-readable
messages; the request layer turns them into `{"success": false, "errors": [...]}`.
"""
from __future__ import annotations

from typing import Optional


class ActionError(Exception):
    """Base class for all expected failures of a core operation."""

    code = 500
    default_message = "Unexpected error."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def errors(self) -> list[str]:
        return [self.message]


class LimitExceededError(ActionError):
    """Raised when the pending sentence quota of a user is used up."""

    code = 429
    default_message = "Pending sentences limit reached."


class InvalidReferenceError(ActionError):
    """Raised when a sentence is missing, foreign or no longer pending."""

    code = 400
    default_message = "Invalid sentence ID provided."


class MissingWordError(ActionError):
    """Raised when a selected sentence points at a word that can't be used."""

    code = 400
    default_message = "Referenced word doesn't exist."


class InvalidSelectionError(ActionError):
    """Raised when a requested id set is not exactly satisfied by the store."""

    code = 400
    default_message = "Invalid sentence IDs provided."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None) -> None:
        if message is None and field is not None:
            message = f"Invalid word IDs in {field} provided."
        super().__init__(message)
        self.field = field


class DuplicateIdsError(ActionError):
    """Raised when id lists repeat an id or overlap where they must be disjoint."""

    code = 400
    default_message = (
        "IDs passed in sentences, markAsMined and pushToTheEnd "
        "have to be unique between arrays."
    )


class UserExistsError(ActionError):
    code = 409
    default_message = "User already registered."


class TransactionConflictError(ActionError):
    """The store aborted the transaction; the whole call may be retried."""

    code = 409
    default_message = "Concurrent modification, please retry."
    retryable = True
