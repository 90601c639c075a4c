"""Canonical timestamp text format used for encrypted date fields.

RFC 3339 with an optional fractional second of up to nine digits, trailing
zeros trimmed, and ``Z`` for UTC (the same shape as Go's RFC3339Nano, which
the existing database rows were written with). Python datetimes only carry
microseconds, so digits beyond the sixth are dropped when parsing.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

_CANONICAL_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"(Z|[+-]\d{2}:\d{2})$"
)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime to canonical text. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")

    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def parse_timestamp(text: str) -> datetime:
    """Parse canonical text back into an aware datetime.

    Raises ValueError for anything else. The message never echoes the
    input, since the input is usually freshly decrypted plaintext.
    """
    match = _CANONICAL_RE.match(text)
    if match is None:
        raise ValueError("value is not a canonical RFC 3339 timestamp")

    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    try:
        if zone == "Z":
            tz = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), microsecond,
            tzinfo=tz,
        )
    except ValueError:
        raise ValueError("timestamp fields are out of range") from None
