from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from insider_signals.config import Config, load_config
from insider_signals.eodhd.client import (
    EODRow,
    candidate_symbols,
    fetch_eod_rows,
    fetch_fundamentals,
    fetch_real_time_quote,
)
from insider_signals.models import MarketContext
from insider_signals.util.time import utcnow


# lookup(security_id) -> MarketContext | None
MarketLookup = Callable[[str], Optional[MarketContext]]

# ~3 months of sessions, matching the usual "average daily volume (3M)" quote field.
AVG_VOLUME_SESSIONS = 63


def _debug(msg: str) -> None:
    print(f"[market] {msg}")


def _to_float(x: Any) -> Optional[float]:
    try:
        if x is None:
            return None
        f = float(x)  # "NA" and friends raise
    except Exception:
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _positive(x: Any) -> Optional[float]:
    f = _to_float(x)
    return f if f is not None and f > 0 else None


def build_market_context(
    symbol: str,
    quote: Dict[str, Any],
    fundamentals: Optional[Dict[str, Any]] = None,
    history: Optional[List[EODRow]] = None,
) -> Optional[MarketContext]:
    """Assemble a MarketContext from provider payloads (best-effort; shapes vary).

    Returns None when the quote has no usable price: without a price nothing downstream
    can use the context.
    """
    price = _positive(quote.get("close")) or _positive(quote.get("previousClose"))
    if price is None:
        return None

    fundamentals = fundamentals or {}
    highlights = fundamentals.get("Highlights") or {}
    technicals = fundamentals.get("Technicals") or {}
    general = fundamentals.get("General") or {}

    market_cap = _positive(highlights.get("MarketCapitalization"))
    ma50 = _positive(technicals.get("50DayMA"))
    ma200 = _positive(technicals.get("200DayMA"))
    high_52w = _positive(technicals.get("52WeekHigh"))
    low_52w = _positive(technicals.get("52WeekLow"))
    currency = general.get("CurrencyCode") or None

    avg_volume = None
    if history:
        vols = [r.volume for r in history[-AVG_VOLUME_SESSIONS:] if r.volume is not None]
        if vols:
            avg_volume = sum(vols) / len(vols)
        if ma50 is None and len(history) >= 50:
            ma50 = sum(r.close for r in history[-50:]) / 50.0

    return MarketContext(
        price=price,
        market_cap=market_cap,
        avg_volume=avg_volume,
        volume=_to_float(quote.get("volume")),
        ma50=ma50,
        ma200=ma200,
        high_52w=high_52w,
        low_52w=low_52w,
        currency=currency,
        symbol=symbol,
    )


class EodhdMarketContextProvider:
    """Market context lookup backed by EODHD.

    Never raises: any failure (missing key, HTTP error, odd payload, foreign listing)
    yields None and scoring runs in degraded mode.
    """

    def __init__(self, cfg: Config):
        self.cfg = cfg

    def __call__(self, security_id: str) -> Optional[MarketContext]:
        return self.get_market_context(security_id)

    def get_market_context(self, security_id: str) -> Optional[MarketContext]:
        cfg = self.cfg
        if not cfg.EODHD_API_KEY:
            _debug("EODHD_API_KEY not set; skipping market context")
            return None

        try:
            symbols = candidate_symbols(security_id, cfg.EODHD_PREFERRED_EXCHANGES)
        except Exception as e:
            _debug(f"Cannot resolve {security_id!r}: {e}")
            return None

        for symbol in symbols:
            try:
                ctx = self._fetch_symbol(symbol)
            except Exception as e:
                _debug(f"Market context failed symbol={symbol}: {e}")
                continue
            if ctx is not None:
                return ctx

        _debug(f"No market context for {security_id} (tried {', '.join(symbols)})")
        return None

    def _fetch_symbol(self, symbol: str) -> Optional[MarketContext]:
        cfg = self.cfg
        timeout = cfg.MARKET_DATA_TIMEOUT_SECONDS
        quote = fetch_real_time_quote(cfg.EODHD_BASE_URL, cfg.EODHD_API_KEY, symbol, timeout=timeout)

        # Fundamentals and history are enrichments; the quote alone is enough.
        fundamentals: Optional[Dict[str, Any]] = None
        try:
            fundamentals = fetch_fundamentals(cfg.EODHD_BASE_URL, cfg.EODHD_API_KEY, symbol, timeout=timeout)
        except Exception as e:
            _debug(f"Fundamentals unavailable symbol={symbol}: {e}")

        currency = ((fundamentals or {}).get("General") or {}).get("CurrencyCode")
        if currency and cfg.MARKET_CURRENCY and str(currency).upper() != cfg.MARKET_CURRENCY.upper():
            _debug(f"Skipping symbol={symbol}: currency {currency} != {cfg.MARKET_CURRENCY}")
            return None

        history: Optional[List[EODRow]] = None
        try:
            today = utcnow().date()
            history = fetch_eod_rows(
                cfg.EODHD_BASE_URL,
                cfg.EODHD_API_KEY,
                symbol,
                start_date=(today - timedelta(days=120)).isoformat(),
                end_date=today.isoformat(),
                timeout=timeout,
            )
        except Exception as e:
            _debug(f"History unavailable symbol={symbol}: {e}")

        return build_market_context(symbol, quote, fundamentals, history)


def safe_lookup(lookup: MarketLookup, security_id: str) -> Optional[MarketContext]:
    """Call a market lookup, turning any exception into None."""
    try:
        return lookup(security_id)
    except Exception as e:
        _debug(f"Market lookup raised for {security_id}: {e}")
        return None


def fetch_market_contexts(
    security_ids: Iterable[str],
    lookup: Optional[MarketLookup],
    *,
    timeout_seconds: Optional[float] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, Optional[MarketContext]]:
    """Fetch contexts for many securities in parallel.

    Each security gets roughly `timeout_seconds`; anything still running after the budget
    is abandoned and resolves to None. Unset limits come from load_config().
    """
    ids = list(dict.fromkeys(security_ids))
    out: Dict[str, Optional[MarketContext]] = {sid: None for sid in ids}
    if lookup is None or not ids:
        return out

    if timeout_seconds is None or max_workers is None:
        cfg = load_config()
        if timeout_seconds is None:
            timeout_seconds = cfg.MARKET_DATA_TIMEOUT_SECONDS
        if max_workers is None:
            max_workers = cfg.MARKET_DATA_WORKERS

    workers = max(1, min(int(max_workers), len(ids)))
    budget = float(timeout_seconds) * math.ceil(len(ids) / workers)

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = {executor.submit(safe_lookup, lookup, sid): sid for sid in ids}
        done, not_done = wait(futures, timeout=budget)
        for fut in done:
            out[futures[fut]] = fut.result()
        for fut in not_done:
            fut.cancel()
            _debug(f"Market lookup timed out for {futures[fut]}")
    finally:
        # Do not block on a hung provider call.
        executor.shutdown(wait=False, cancel_futures=True)

    return out
