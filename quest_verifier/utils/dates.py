"""Date parsing helpers shared by the config loader, CLI and HTTP boundary."""

import re
from datetime import datetime, time, timezone
from typing import Union

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_date_only(value: str) -> bool:
    """True for plain ``YYYY-MM-DD`` strings (no time component)."""
    return bool(_DATE_ONLY.match(value.strip()))


def parse_datetime(value: Union[str, datetime], end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime into an aware UTC datetime.

    Accepts ``YYYY-MM-DD`` and full ISO-8601 datetimes (a trailing ``Z`` is
    allowed). Naive values are taken as UTC. With ``end_of_day`` a date-only
    value resolves to the last second of that day, so ranges stay inclusive.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Date value must be a non-empty string")
        raw = value.strip()
        if is_date_only(raw):
            day = datetime.strptime(raw, "%Y-%m-%d").date()
            moment = time(23, 59, 59) if end_of_day else time(0, 0, 0)
            return datetime.combine(day, moment, tzinfo=timezone.utc)
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_timestamp(value: Union[str, datetime, int], end_of_day: bool = False) -> int:
    """Unix timestamp (seconds) for a date string, datetime or int."""
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid timestamp")
    if isinstance(value, int):
        return value
    return int(parse_datetime(value, end_of_day=end_of_day).timestamp())


def format_timestamp(timestamp: int) -> str:
    """ISO-8601 UTC rendering of a unix timestamp, for logs and output."""
    return (
        datetime.fromtimestamp(timestamp, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )
