"""
Custom exceptions for the reminder engine.

Mirrors the failure taxonomy of a run: malformed input, transient faults that
are retried with backoff, permanent faults that are counted and reported.
"""

from __future__ import annotations


class ReminderError(Exception):
    """Base error for the reminder engine."""

    pass


class TransientError(ReminderError):
    """Temporary errors (network, rate limit) that should be retried with backoff."""

    pass


class PermanentError(ReminderError):
    """Errors that must not be retried (bad address, rejected payload)."""

    pass


class RetriesExhausted(PermanentError):
    """Raised once an operation failed on every allowed attempt."""

    def __init__(self, label: str, attempts: int, last_error: BaseException):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")


class MalformedRecord(ReminderError):
    """A source row that cannot be classified (blank fields, bad due date)."""

    pass


class QueueClosedError(ReminderError):
    """Submission to a queue that has been stopped."""

    pass


class ScanError(ReminderError):
    """A source-group scan could not be completed."""

    pass


class ConfigError(ReminderError):
    """Invalid or missing configuration."""

    pass


def describe_error(exc: BaseException) -> str:
    """Short, log-friendly description; unwraps exhausted retries."""
    if isinstance(exc, RetriesExhausted):
        exc = exc.last_error
    msg = str(exc)
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__
