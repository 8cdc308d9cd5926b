"""UTC helpers. Anything without a zone marker is read as UTC, never local time."""

from datetime import date, datetime, time, timedelta, timezone

from services.errors import ValidationError


def utcnow():
    return datetime.now(timezone.utc)


def to_utc(value):
    """Attach or convert to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value):
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Timestamp is required")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValidationError(f"Invalid timestamp: {value!r}") from exc


def parse_day(value):
    """Parse a calendar date (``YYYY-MM-DD`` or a full timestamp) into a date."""
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Date is required")
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return parse_timestamp(text).date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc


def day_bounds(day):
    """Half-open UTC range [start, next day start) covering one calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def to_db(value):
    """Fixed-width UTC text so that lexical order is chronological order."""
    return to_utc(value).isoformat(timespec="microseconds")


def from_db(text):
    return to_utc(datetime.fromisoformat(text))
