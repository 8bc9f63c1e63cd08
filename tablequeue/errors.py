"""Typed errors raised by the waitlist core.

Validation and transition errors carry messages meant to be shown to staff
and guests as-is. ``StorageError`` wraps database failures and never exposes
driver details.
"""
from __future__ import annotations


class WaitlistError(Exception):
    """Base class for all waitlist errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WaitlistError):
    """Malformed input for a waitlist operation."""


class InvalidTransitionError(WaitlistError):
    """Status change not permitted from the entry's current status."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change status from {current} to {requested}")
        self.current = current
        self.requested = requested


class InvalidConfirmationCodeError(WaitlistError):
    """Check-in code does not match an active remote entry."""


class NotFoundError(WaitlistError):
    """Entry, table type or restaurant id is unknown."""


class StorageError(WaitlistError):
    """Persistence failed; the caller may retry."""

    def __init__(self, message: str = "Storage is temporarily unavailable, please try again"):
        super().__init__(message)


class ConflictError(StorageError):
    """Another writer took the same queue slot first; retrying will succeed."""

    def __init__(self, message: str = "The waitlist changed while saving, please try again"):
        super().__init__(message)
