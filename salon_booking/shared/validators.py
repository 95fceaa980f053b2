"""Shared validation utilities"""

import re
from typing import Optional, Union

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: Union[str, int, None]) -> Optional[int]:
    """
    Convert a wall-clock time to minutes since midnight.

    Accepts "HH:MM" strings ("09:30", "24:00") or an integer number of minutes.

    Returns:
        Minutes in 0..1440, or None when no value was given

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if value is None or value == "":
        return None

    if isinstance(value, int):
        minutes = value
    else:
        match = _TIME_PATTERN.match(value.strip())
        if not match:
            raise ValueError("Time must be in HH:MM format")
        hours, mins = int(match.group(1)), int(match.group(2))
        if mins >= 60:
            raise ValueError("Minutes must be between 00 and 59")
        minutes = hours * 60 + mins

    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError("Time must be between 00:00 and 24:00")
    return minutes


def format_time_of_day(minutes: Optional[int]) -> Optional[str]:
    """570 -> '09:30'"""
    if minutes is None:
        return None
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_day_of_week(value: int) -> int:
    """0 = Sunday ... 6 = Saturday"""
    if not 0 <= value <= 6:
        raise ValueError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    return value


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
