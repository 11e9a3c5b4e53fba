from datetime import date, datetime
from utils.constants import DATE_FORMAT, MONTH_FORMAT


def today() -> date:
    return date.today()


def parse_date(date_str: str) -> date | None:
    """Parse a date string in YYYY-MM-DD format, returning None on failure.

    Full ISO timestamps ('2024-01-15T00:00:00.000Z') are accepted and
    truncated to their date part.
    """
    if not date_str:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"):
        try:
            return datetime.strptime(date_str[:10], fmt).date()
        except ValueError:
            continue
    return None


def to_date(value) -> date | None:
    """Coerce a date, datetime or date string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    return None


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def parse_month(month_str: str) -> date | None:
    """Return the first day of the given YYYY-MM month string."""
    if not month_str:
        return None
    try:
        return datetime.strptime(month_str, MONTH_FORMAT).date()
    except ValueError:
        return None


def format_display_date(d: date) -> str:
    """Human-readable date used in notification texts, e.g. 'Feb 15, 2024'."""
    return d.strftime("%b %d, %Y")
