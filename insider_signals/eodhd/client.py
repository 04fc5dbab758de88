from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import requests


@dataclass(frozen=True)
class EODRow:
    date: str
    close: float
    volume: float | None


_SYMBOL_RE = re.compile(r"^[A-Za-z0-9\-]+\.[A-Za-z]{1,4}$")

# Listings that move between venues (graduations, CSE aliases).
_ALTERNATE_SUFFIXES = {
    "V": ("TO",),
    "CSE": ("CN",),
    "CN": ("CSE",),
}


def _debug(msg: str) -> None:
    print(f"[eodhd] {msg}")


def candidate_symbols(ticker: str, preferred_exchanges: Sequence[str]) -> List[str]:
    """EODHD symbols to try for a filing ticker, most likely first.

    "ABC.V" -> ["ABC.V", "ABC.TO"]; "ABC" -> ["ABC.V", "ABC.TO", "ABC.CN"] (preferred order).
    """
    t = (ticker or "").strip().upper()
    if not t:
        raise RuntimeError("Ticker is blank; cannot resolve EODHD symbol")

    out: List[str] = []
    if _SYMBOL_RE.match(t):
        root, suffix = t.rsplit(".", 1)
        out.append(t)
        for alt in _ALTERNATE_SUFFIXES.get(suffix, ()):
            out.append(f"{root}.{alt}")
    else:
        for ex in preferred_exchanges:
            ex_u = str(ex).strip().upper()
            if ex_u:
                out.append(f"{t}.{ex_u}")

    # unique but stable order
    seen: set[str] = set()
    uniq: List[str] = []
    for s in out:
        if s not in seen:
            seen.add(s)
            uniq.append(s)
    return uniq


def fetch_real_time_quote(base_url: str, api_key: str, symbol: str, timeout: float = 30) -> Dict[str, Any]:
    """Fetch the latest (delayed) quote for a symbol.

    Docs: https://eodhd.com/api/real-time/{SYMBOL.EXCHANGE}?api_token=...&fmt=json
    """
    url = f"{base_url.rstrip('/')}/real-time/{symbol}"
    params = {"api_token": api_key, "fmt": "json"}
    _debug(f"Fetching real-time quote: {url}")
    r = requests.get(url, params=params, timeout=timeout)
    if r.status_code != 200:
        raise RuntimeError(f"EODHD real-time error {r.status_code}: {r.text}")
    data = r.json() if r.text else {}
    if not isinstance(data, dict):
        raise RuntimeError(f"EODHD real-time returned unexpected payload: {data}")
    return data


def fetch_fundamentals(base_url: str, api_key: str, symbol: str, timeout: float = 30) -> Dict[str, Any]:
    """Fetch fundamentals payload for a symbol.

    Docs: https://eodhd.com/api/fundamentals/{SYMBOL.EXCHANGE}?api_token=...&fmt=json
    """
    url = f"{base_url.rstrip('/')}/fundamentals/{symbol}"
    params = {"api_token": api_key, "fmt": "json"}
    _debug(f"Fetching fundamentals: {url}")
    r = requests.get(url, params=params, timeout=timeout)
    if r.status_code != 200:
        raise RuntimeError(f"EODHD fundamentals error {r.status_code}: {r.text}")
    data = r.json() if r.text else {}
    if not isinstance(data, dict):
        raise RuntimeError(f"EODHD fundamentals returned unexpected payload: {data}")
    return data


def fetch_eod_rows(
    base_url: str,
    api_key: str,
    symbol: str,
    start_date: str,
    end_date: str,
    timeout: float = 30,
) -> List[EODRow]:
    """Fetch daily EOD bars (close + volume) from EODHD."""
    url = f"{base_url.rstrip('/')}/eod/{symbol}"
    params = {
        "api_token": api_key,
        "fmt": "json",
        "period": "d",
        "from": start_date,
        "to": end_date,
    }
    _debug(f"Fetching EOD rows: {url} from={start_date} to={end_date}")
    r = requests.get(url, params=params, timeout=timeout)
    if r.status_code != 200:
        raise RuntimeError(f"EODHD eod error {r.status_code}: {r.text}")

    data = r.json()
    if not isinstance(data, list):
        raise RuntimeError(f"EODHD eod returned unexpected payload: {data}")

    out: List[EODRow] = []
    for row in data:
        try:
            d = str(row.get("date") or "").strip()
            close = row.get("adjusted_close")
            if close is None:
                close = row.get("close")
            if not d or close is None:
                continue
            vol = row.get("volume")
            out.append(EODRow(date=d, close=float(close), volume=(float(vol) if vol is not None else None)))
        except Exception:
            continue
    return out
