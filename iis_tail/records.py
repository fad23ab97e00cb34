"""Builds output records from log lines and the directives in effect."""

import logging
from datetime import datetime, timezone
from typing import Any

from iis_tail.directives import DirectiveState

logger = logging.getLogger(__name__)

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
)


def parse_timestamp(value: str) -> dict[str, int] | None:
    """Parse a W3C date/time string into ``{"seconds", "nanos"}``.

    W3C logs are written in UTC, so naive values are taken as UTC.
    Returns None if the string is not a recognised date/time.
    """
    value = value.strip()
    parsed = None
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.debug("Unparsable timestamp: %r", value)
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    seconds = int(parsed.replace(microsecond=0).timestamp())
    return {"seconds": seconds, "nanos": parsed.microsecond * 1000}


def get_timestamp(date: str | None, time: str | None,
                  date_time: str | None) -> dict[str, int] | None:
    """Combine a row's date/time fields with the Date directive.

    Row date + row time wins; otherwise the day of the Date directive is
    paired with the row time; otherwise the Date directive is used as is.
    """
    if date is not None and time is not None:
        value = f"{date} {time}"
    elif time is not None and date_time is not None:
        parts = date_time.split()
        day = parts[0] if parts else date_time
        value = f"{day} {time}"
    elif date_time is not None:
        value = date_time
    else:
        return None
    return parse_timestamp(value)


def build_record(line: str, path: str, directives: DirectiveState,
                 process_fields: bool) -> dict[str, Any]:
    """Turn one log line into an output record."""
    values: dict[str, str] = {}
    if directives.fields is not None:
        # zip drops extra tokens; missing tokens leave their field out
        values = dict(zip(directives.fields, line.split()))

    if process_fields and directives.fields is not None:
        record: dict[str, Any] = dict(values)
    else:
        record = {"message": line}

    record["log-path"] = path
    timestamp = get_timestamp(values.get("date"), values.get("time"), directives.date)
    if timestamp is not None:
        record["timestamp"] = timestamp
    return record
