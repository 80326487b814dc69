"""Exception types raised at the engine boundaries."""

from __future__ import annotations


class ActivityTrackerError(Exception):
    """Base class for all errors raised by the activity tracker."""


class ValidationError(ActivityTrackerError, ValueError):
    """A record or rule payload is malformed or missing required fields."""


class NotFoundError(ActivityTrackerError, LookupError):
    """A referenced rule or activity does not exist."""


class ConflictError(ActivityTrackerError):
    """A rating change needs explicit user confirmation before it can proceed."""
