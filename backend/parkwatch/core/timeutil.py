"""UTC helpers. SQLite hands back naive datetimes; everything in the notifier compares aware UTC."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def bucket_start(dt: datetime, width_seconds: int) -> datetime:
    """Start of the fixed-width bucket (aligned to the epoch) containing dt."""
    ts = int(as_utc(dt).timestamp())
    return datetime.fromtimestamp(ts - ts % width_seconds, tz=timezone.utc)
