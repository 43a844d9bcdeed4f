"""
Input validation shared by availability search and reservation creation.

All failures are collected per field and raised together as one
ValidationError, so a caller can show every problem with a request at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from lodging_booking.errors import ValidationError
from lodging_booking.utils.datetime import utc_today

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class StayRequest:
    """A validated date range and party size."""

    check_in: date
    check_out: date
    guests: int

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _check_stay(
    errors: dict[str, str],
    check_in: Any,
    check_out: Any,
    guests: Any,
    today: Optional[date],
) -> Optional[StayRequest]:
    parsed_in = _parse_date(check_in)
    parsed_out = _parse_date(check_out)

    if check_in in (None, ""):
        errors["check_in"] = "check_in is required"
    elif parsed_in is None:
        errors["check_in"] = "Invalid date format, expected YYYY-MM-DD"
    if check_out in (None, ""):
        errors["check_out"] = "check_out is required"
    elif parsed_out is None:
        errors["check_out"] = "Invalid date format, expected YYYY-MM-DD"

    if parsed_in is not None and parsed_in < (today or utc_today()):
        errors["check_in"] = "check_in cannot be in the past"
    if parsed_in is not None and parsed_out is not None and parsed_out <= parsed_in:
        errors["check_out"] = "check_out must be after check_in"

    guest_count: Optional[int] = None
    if guests is None:
        errors["guests"] = "guests is required"
    else:
        try:
            guest_count = int(guests)
        except (TypeError, ValueError):
            errors["guests"] = "guests must be an integer"
        else:
            if guest_count < 1:
                errors["guests"] = "guests must be at least 1"

    if errors or parsed_in is None or parsed_out is None or guest_count is None:
        return None
    return StayRequest(check_in=parsed_in, check_out=parsed_out, guests=guest_count)


def validate_stay(
    check_in: Any, check_out: Any, guests: Any, today: Optional[date] = None
) -> StayRequest:
    """
    Validate a requested date range and party size.

    Args:
        check_in: ISO date string or date.
        check_out: ISO date string or date.
        guests: Party size.
        today: Override for the current date (defaults to UTC today).

    Returns:
        StayRequest: Parsed values.

    Raises:
        ValidationError: With a reason per offending field.
    """
    errors: dict[str, str] = {}
    stay = _check_stay(errors, check_in, check_out, guests, today)
    if stay is None:
        raise ValidationError(errors)
    return stay


def validate_guest(guest: dict[str, Any]) -> dict[str, Optional[str]]:
    """
    Validate guest identity fields and return them normalized.

    Args:
        guest: Mapping with first_name, last_name, email and optional
            phone_number / special_requests.

    Returns:
        dict[str, Optional[str]]: Trimmed guest fields, email lower-cased.

    Raises:
        ValidationError: If a name is blank or the email is malformed.
    """
    errors: dict[str, str] = {}
    first_name = str(guest.get("first_name") or "").strip()
    last_name = str(guest.get("last_name") or "").strip()
    email = str(guest.get("email") or "").strip()

    if not first_name:
        errors["first_name"] = "First name is required"
    if not last_name:
        errors["last_name"] = "Last name is required"
    if not EMAIL_PATTERN.match(email):
        errors["email"] = "Valid email is required"
    if errors:
        raise ValidationError(errors)

    return {
        "first_name": first_name,
        "last_name": last_name,
        "email": email.lower(),
        "phone_number": (guest.get("phone_number") or None),
        "special_requests": (guest.get("special_requests") or None),
    }


def validate_booking(
    guest: dict[str, Any],
    check_in: Any,
    check_out: Any,
    guests: Any,
    today: Optional[date] = None,
) -> tuple[dict[str, Optional[str]], StayRequest]:
    """Validate guest fields and stay together, reporting all field errors at once."""
    errors: dict[str, str] = {}
    try:
        normalized_guest = validate_guest(guest)
    except ValidationError as e:
        errors.update(e.errors)
        normalized_guest = {}

    stay = _check_stay(errors, check_in, check_out, guests, today)
    if errors or stay is None:
        raise ValidationError(errors)
    return normalized_guest, stay


def validate_page(page: Any, page_size: Any) -> tuple[int, int]:
    """
    Validate pagination parameters.

    Args:
        page: 1-based page number (default 1).
        page_size: Items per page, 1..100 (default 20).

    Returns:
        tuple[int, int]: (page, page_size)

    Raises:
        ValidationError: If either value is out of range.
    """
    errors: dict[str, str] = {}
    parsed_page = 1 if page is None else page
    parsed_size = DEFAULT_PAGE_SIZE if page_size is None else page_size

    if not isinstance(parsed_page, int) or parsed_page < 1:
        errors["page"] = "page must be an integer >= 1"
    if not isinstance(parsed_size, int) or not 1 <= parsed_size <= MAX_PAGE_SIZE:
        errors["page_size"] = f"page_size must be between 1 and {MAX_PAGE_SIZE}"
    if errors:
        raise ValidationError(errors)
    return parsed_page, parsed_size
