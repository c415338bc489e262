"""
Appointment date filter.

The calendar page shows the next date as "<weekday> <day>.<month>", e.g.
"Mo 10.03". There is no year, so the comparison is a plain two-field
threshold and does not know about month or year rollover.
"""

from __future__ import annotations


def create_text(when: str) -> str:
    return f"An appointment is available {when}!"


def parse_appointment_date(appointment_date: str) -> tuple[int, int]:
    """Return (day, month). Raises ValueError or IndexError on bad input."""
    parts = appointment_date.strip().split(" ")[1].split(".")
    return int(parts[0]), int(parts[1])


def is_interesting_appointment_date(
    appointment_date: str,
    earlier_than_day: int | None,
    earlier_than_month: int | None,
) -> bool:
    """
    True unless the date parses and is not before the threshold.

    A month after the threshold month is never interesting; otherwise a day
    on or after the threshold day is not interesting either. Anything that
    fails to parse counts as interesting, and so does every date when a
    threshold is unset.
    """
    if earlier_than_day is None or earlier_than_month is None:
        return True
    try:
        day, month = parse_appointment_date(appointment_date)
    except (ValueError, IndexError, AttributeError):
        return True
    if month > earlier_than_month:
        return False
    if day >= earlier_than_day:
        return False
    return True
