"""Domain-level exceptions.

Raised by use cases when a request breaks a business rule; entry
points report them to the caller.  No infrastructure types appear here.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainError):
    """Input failed a business rule (bad URL, threshold out of range, ...)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

