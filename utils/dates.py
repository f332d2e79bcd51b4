"""Time helpers. All timestamps are stored as naive UTC."""
from datetime import date, datetime, timezone


def utcnow():
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    """Render a date/datetime for JSON, or ``None``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(microsecond=0).isoformat() + 'Z'
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
