"""Errors raised by the client-side sync core."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for failures surfaced by the sync core."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkFailure(SyncError):
    """The backend could not be reached or answered with a transient error."""

    retryable = True


class InvalidTransition(SyncError):
    """The requested connection transition is not valid in the current state."""


class AlreadyConnected(InvalidTransition):
    """A connection edge already exists for this counterpart."""


class ValidationFailure(SyncError):
    """The request was rejected before (or by) the backend as malformed."""


class NotAuthenticated(SyncError):
    """The viewer's credentials were missing or refused."""
