from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def lookback_cutoff(now: datetime, days: int) -> date:
    """First calendar day still inside a lookback window ending at `now`."""
    return now.date() - timedelta(days=int(days))
