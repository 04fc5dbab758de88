from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List

from insider_signals.models import InsiderKey, TransactionRecord
from insider_signals.util.normalization import insider_key
from insider_signals.util.time import lookback_cutoff


def filter_recent(records: Iterable[TransactionRecord], lookback_days: int, now: datetime) -> List[TransactionRecord]:
    """Keep records traded on/after now - lookback_days.

    Records without a parsable transaction date are dropped: we cannot tell if they are stale.
    """
    cutoff = lookback_cutoff(now, lookback_days)
    return [r for r in records if r.transaction_date is not None and r.transaction_date >= cutoff]


def dedupe_by_id(records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    """One record per record_id; the last one seen wins.

    Sources resend corrected filings in order of discovery, so ingestion order beats filing date.
    The surviving record keeps the position of the first occurrence.
    """
    by_id: Dict[str, TransactionRecord] = {}
    for r in records:
        by_id[r.record_id] = r
    return list(by_id.values())


def group_by_security(records: Iterable[TransactionRecord]) -> Dict[str, List[TransactionRecord]]:
    out: Dict[str, List[TransactionRecord]] = {}
    for r in records:
        out.setdefault(r.security_id, []).append(r)
    return out


def group_by_insider(records: Iterable[TransactionRecord]) -> Dict[InsiderKey, List[TransactionRecord]]:
    out: Dict[InsiderKey, List[TransactionRecord]] = {}
    for r in records:
        key = InsiderKey(security_id=r.security_id, insider_key=insider_key(r.insider_name))
        out.setdefault(key, []).append(r)
    return out
