"""Next-occurrence arithmetic for recurring expenses.

Months and years are added with ``dateutil.relativedelta``: the day of month
is kept when the target month has it and is otherwise clamped to the last
day of that month.

    2024-01-31 + 1 month  -> 2024-02-29
    2023-01-31 + 1 month  -> 2023-02-28
    2024-02-29 + 1 year   -> 2025-02-28
    2024-02-29 + 4 years  -> 2028-02-29

Each step starts from the previous occurrence, so a clamped day stays
clamped: a series anchored on Jan 31 runs 01-31, 02-29, 03-29, 04-29...
"""
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from utils.constants import FREQUENCIES
from utils.date_helpers import to_date
from utils.errors import InvalidArgumentError


def validate_schedule(frequency: str, interval: int):
    if frequency not in FREQUENCIES:
        raise InvalidArgumentError(
            f"Invalid frequency {frequency!r}; expected one of {', '.join(FREQUENCIES)}."
        )
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise InvalidArgumentError(f"Interval must be an integer, got {interval!r}.")
    if interval <= 0:
        raise InvalidArgumentError(f"Interval must be at least 1, got {interval}.")


def next_occurrence(from_date, frequency: str, interval: int) -> date:
    """Return the occurrence that follows ``from_date``.

    ``from_date`` may be a date, a datetime (its date part is used) or an
    ISO date string. Raises InvalidArgumentError on malformed input.
    """
    validate_schedule(frequency, interval)
    start = to_date(from_date)
    if start is None:
        raise InvalidArgumentError(f"Invalid date: {from_date!r}")

    try:
        if frequency == "daily":
            return start + timedelta(days=interval)
        if frequency == "weekly":
            return start + timedelta(weeks=interval)
        if frequency == "monthly":
            return start + relativedelta(months=interval)
        return start + relativedelta(years=interval)
    except (ValueError, OverflowError) as exc:
        raise InvalidArgumentError(
            f"No {frequency} occurrence {interval} step(s) after {start}: {exc}"
        ) from exc
