from __future__ import annotations

from datetime import datetime, timedelta, timezone

ONE_SECOND = timedelta(seconds=1)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize as UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(ts: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp string.
    Naive values are taken as UTC. Returns None if ts is falsy.
    """
    if not ts:
        return None
    dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def whole_seconds(start: datetime, end: datetime) -> int:
    """floor((end - start) / 1s), never negative."""
    return max((end - start) // ONE_SECOND, 0)


def elapsed_seconds(
    start: str | datetime | None,
    now: datetime,
    end: str | datetime | None = None,
    is_active: bool = True,
    stored: int = 0,
) -> int:
    """
    Duration of a timer as a pure function of its state:
      - active timers count up to ``now``
      - stopped timers report the value frozen at stop time (``stored``),
        falling back to end - start for records that never stored one
    """
    s = parse_iso(start) if isinstance(start, str) or start is None else start
    if s is None:
        return 0
    if is_active:
        return whole_seconds(s, now)
    if stored:
        return stored
    e = parse_iso(end) if isinstance(end, str) or end is None else end
    return whole_seconds(s, e) if e else 0
