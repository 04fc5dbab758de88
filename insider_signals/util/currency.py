from __future__ import annotations

from insider_signals.config import ScoringConfig


def fx_multiplier(currency: str | None, cfg: ScoringConfig) -> float:
    """Fixed multiplier converting an amount in `currency` into the local currency.

    Blank or local currency -> 1.0. Matching is by substring because filings write
    things like "USD - US Dollar".
    """
    cur = (currency or "").strip().upper()
    if not cur or cfg.LOCAL_CURRENCY.upper() in cur:
        return 1.0
    for code, rate in cfg.FX_RATES.items():
        if code.upper() in cur:
            return float(rate)
    return 1.0
