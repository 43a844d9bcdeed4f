"""
Error taxonomy for the booking core.

Every error carries a human-readable message plus a context dict holding the
identifiers a caller needs to build a precise message (reservation id, unit id,
offending field) without exposing storage details.
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base class for all expected booking-core failures."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(BookingError):
    """
    Malformed or out-of-range input.

    Args:
        errors: Mapping of field name to the reason that field was rejected.
    """

    def __init__(self, errors: dict[str, str], **context: Any) -> None:
        super().__init__("Validation failed", **context)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, reason: str, **context: Any) -> ValidationError:
        return cls({field: reason}, **context)


class ConflictError(BookingError):
    """The request clashes with current state, e.g. a unit already booked for the dates."""


class AlreadyPaidError(ConflictError):
    """A payment intent was requested for a reservation that is already paid."""


class InvalidTransitionError(BookingError):
    """An illegal reservation status change was requested."""

    def __init__(self, current: str, requested: str, **context: Any) -> None:
        super().__init__(
            f"Cannot move reservation from '{current}' to '{requested}'", **context
        )
        self.current = current
        self.requested = requested


class NotFoundError(BookingError):
    """Unknown reservation, unit or payment intent."""


class TransientError(BookingError):
    """A storage or processor timeout. Safe for the caller to retry."""


class ProcessorError(BookingError):
    """The payment processor rejected or failed a request for a non-transient reason."""
