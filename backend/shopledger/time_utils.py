from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional

# Everything in the ledger is stored as UTC without tzinfo.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_aware_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a report/query timestamp into a UTC-naive datetime.

    Blank input gives None. A bare date ("2026-01-31") means midnight, or
    the last microsecond of that day when end_of_day is set, so date
    ranges from the sales list are inclusive. Offsets and a trailing "Z"
    are converted to UTC. Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if end_of_day and "T" not in text and " " not in text:
        parsed = datetime.combine(parsed.date(), time.max)
    return _as_aware_utc(parsed).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Seconds-precision ISO-8601 with a trailing 'Z' (naive input is UTC)."""
    if dt is None:
        return None
    return _as_aware_utc(dt).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the epoch; sale ids are built from this."""
    return int(_as_aware_utc(dt).timestamp() * 1000)
