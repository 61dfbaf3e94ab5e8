"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_before(reference: datetime | date, days: int) -> date:
    """Calendar date `days` days before the reference moment"""
    if isinstance(reference, datetime):
        reference = reference.date()
    return reference - timedelta(days=days)


def parse_calendar_date(value: object) -> date:
    """
    Parse a transaction date into a calendar date.

    Accepts date/datetime instances and ISO-8601 strings ("2024-05-01" or
    "2024-05-01T10:00:00Z"). Timestamps carrying an offset are converted to
    UTC first so they compare against UTC calendar windows. Raises
    ValueError/TypeError for anything else.
    """
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
        return date.fromisoformat(text)
    raise TypeError(f"Unsupported date value: {value!r}")
