"""Canonical timestamp handling.

Every timestamp written to the store or to a snapshot goes through
``canonical_timestamp`` so that natural keys containing a ``createdAt`` compare
equal across export/import round trips, whatever ISO-8601 spelling the source
used.
"""

from datetime import UTC, datetime


def canonical_timestamp(value: str | datetime | None) -> str | None:
    """Normalize an ISO-8601 string or datetime to canonical UTC text.

    Naive values are taken as UTC. Output is ``YYYY-MM-DDTHH:MM:SS.mmmZ``, or
    microsecond precision when the value has a sub-millisecond part.
    Returns None for None. Raises ValueError for unparseable strings.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        dt = value

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)

    timespec = "milliseconds" if dt.microsecond % 1000 == 0 else "microseconds"
    return dt.replace(tzinfo=None).isoformat(timespec=timespec) + "Z"


def utc_now() -> str:
    """Current time in canonical form."""
    return canonical_timestamp(datetime.now(UTC))


def filename_timestamp(moment: datetime | None = None) -> str:
    """Timestamp safe for use in a filename (``:`` and ``.`` replaced)."""
    text = canonical_timestamp(moment or datetime.now(UTC))
    return text.replace(":", "-").replace(".", "-")
