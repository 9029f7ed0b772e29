from datetime import datetime, timezone
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

# epoch values above this are milliseconds, below it seconds
_MILLIS_THRESHOLD = 100_000_000_000


def to_instant(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    Firestore returns DatetimeWithNanoseconds (a datetime subclass), while
    records written by web clients may hold ISO strings, epoch numbers or a
    serialized {"seconds", "nanoseconds"} map. Anything else yields None.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_instant(datetime.fromisoformat(text))
        except ValueError:
            logger.warning(f"Unparseable timestamp string: {value!r}")
            return None

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if seconds is not None:
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)

    logger.warning(f"Unsupported timestamp type: {type(value).__name__}")
    return None
