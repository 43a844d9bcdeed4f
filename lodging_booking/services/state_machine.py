"""
Reservation status state machine.

    pending -> confirmed -> checked_in -> checked_out
    pending | confirmed | checked_in -> cancelled

checked_out and cancelled are terminal.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from lodging_booking.errors import InvalidTransitionError


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.CHECKED_IN, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CHECKED_IN: frozenset(
        {ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CHECKED_OUT: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)

# Status entered -> dispatch kind triggered
DISPATCH_ON_ENTER: dict[ReservationStatus, str] = {
    ReservationStatus.CONFIRMED: "booking-confirmed",
    ReservationStatus.CANCELLED: "booking-cancelled",
}


def parse_status(value: str) -> ReservationStatus:
    """
    Parse a status string, accepting hyphenated forms such as "checked-in".

    Raises:
        ValueError: If the value is not a known status.
    """
    return ReservationStatus(value.strip().lower().replace("-", "_"))


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(
    current: ReservationStatus, target: ReservationStatus, reservation_id: Optional[str] = None
) -> None:
    """
    Raise unless current -> target is a legal move.

    Raises:
        InvalidTransitionError: For any move not in the transition table,
            including self-transitions.
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(
            current.value, target.value, reservation_id=reservation_id
        )
