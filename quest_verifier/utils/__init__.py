from quest_verifier.utils.dates import (
    format_timestamp,
    is_date_only,
    parse_datetime,
    to_timestamp,
)

__all__ = [
    "format_timestamp",
    "is_date_only",
    "parse_datetime",
    "to_timestamp",
]
