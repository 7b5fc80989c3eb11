"""Calendar helpers for monthly balance periods."""
from datetime import date
from typing import Tuple


def calculate_last_month(year: int, month: int) -> Tuple[int, int]:
    """Return (year, month) of the calendar month before the given one."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    if month == 1:
        return year - 1, 12
    return year, month - 1


def first_day_of_month(year: int, month: int) -> date:
    return date(year, month, 1)
