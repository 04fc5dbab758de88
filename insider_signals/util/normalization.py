from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime
from typing import Any, Mapping, Optional

from insider_signals.models import TransactionRecord
from insider_signals.util.hashing import fingerprint


UNKNOWN_CODE = "00"

_SUFFIXES = {
    "jr",
    "sr",
    "ii",
    "iii",
    "iv",
    "md",
    "phd",
    "cpa",
    "esq",
}

# Currency symbols and ISO codes that show up glued to amounts ("$1,250.00", "CAD 2.50").
_NUMBER_NOISE_RE = re.compile(r"[,\s$€£¥]|\b(?:CAD|USD|EUR|GBP|C\$|US\$)\b", re.IGNORECASE)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%m/%d/%Y",
)


def clean_number(value: Any) -> float:
    """Parse a dirty numeric field ("+239,491", "$2.50", "") into a float.

    Blank or unparsable values resolve to 0.0; filings often leave price blank.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return f if f == f else 0.0  # NaN -> 0
    s = _NUMBER_NOISE_RE.sub("", str(value))
    if not s:
        return 0.0
    try:
        f = float(s)
    except Exception:
        return 0.0
    if f != f or f in (float("inf"), float("-inf")):
        return 0.0
    return f


def clean_optional_number(value: Any) -> Optional[float]:
    """Like clean_number, but blank means None (used for balances)."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    s = _NUMBER_NOISE_RE.sub("", str(value))
    try:
        return float(s)
    except Exception:
        return None


def extract_tx_code(type_text: Any) -> str:
    """Leading code token of a transaction type ("54 - Exercise of warrants" -> "54")."""
    if type_text is None:
        return UNKNOWN_CODE
    s = str(type_text).strip()
    if not s:
        return UNKNOWN_CODE
    code = s.split(" - ", 1)[0].strip()
    # Tolerate "54-Exercise" and "54 Exercise" as well.
    code = re.split(r"[\s\-]", code, maxsplit=1)[0].strip()
    return code or UNKNOWN_CODE


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except Exception:
        pass
    try:
        return date.fromisoformat(s[:10])
    except Exception:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except Exception:
            continue
    return None


def _basic_name_norm(s: str) -> str:
    s = unicodedata.normalize("NFKC", s)
    s = s.replace("\u00a0", " ")
    s = s.lower().strip()

    # Replace any non-alphanumeric runs with spaces.
    s = re.sub(r"[^a-z0-9]+", " ", s)

    return " ".join(s.split())


def insider_key(name: Any) -> str:
    """Grouping key for an insider name.

    Conservative: "ENTWISTLE, Darren" and "Darren Entwistle" match; no fuzzy matching.
    Blank names share the key "unknown".
    """
    if name is None:
        return "unknown"
    raw = str(name).strip()
    if not raw:
        return "unknown"

    # Comma-based "LAST, FIRST M" handling: only if comma exists in raw.
    if "," in raw:
        left, right = raw.split(",", 1)
        left_n = _basic_name_norm(left)
        right_n = _basic_name_norm(right)
        s = f"{right_n} {left_n}".strip() if left_n and right_n else _basic_name_norm(raw)
    else:
        s = _basic_name_norm(raw)

    tokens = s.split()
    while tokens and tokens[-1] in _SUFFIXES:
        tokens.pop()

    return " ".join(tokens) or "unknown"


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        v = raw.get(k)
        if v is not None and not (isinstance(v, str) and not v.strip()):
            return v
    return None


def _text(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def normalize_record(raw: Mapping[str, Any]) -> Optional[TransactionRecord]:
    """Turn one raw filing row into a TransactionRecord.

    Accepts either the row itself or a wrapper of the form {"raw": {...}, "symbol": ...}.
    Returns None only when the row names no security (it cannot be grouped).
    """
    if not isinstance(raw, Mapping):
        return None

    inner = raw.get("raw")
    row: Mapping[str, Any] = inner if isinstance(inner, Mapping) else raw

    security_id = _text(_first(raw, "symbol", "security_id", "ticker") or _first(row, "symbol", "security_id", "ticker"))
    if not security_id:
        return None
    security_id = security_id.upper()

    insider_name = _text(_first(row, "insider_name", "insider", "owner_name"))
    relationship = _text(_first(row, "relationship_type", "relationship", "relation", "title"))
    type_text = _first(row, "type", "transaction_type", "code")
    tx_date_raw = _first(row, "transaction_date", "date") or _first(raw, "date")
    filing_date_raw = _first(row, "filing_date", "filed_date", "filing_date_time")
    quantity = clean_number(_first(row, "number_moved", "quantity", "shares"))
    price = clean_number(_first(row, "price", "unit_price"))
    currency = _text(_first(row, "currency")).upper()
    security_class = _text(_first(row, "security", "security_class", "security_title"))
    balance_after = clean_optional_number(_first(row, "closing_balance", "balance", "balance_after"))
    issuer_name = _first(row, "issuer_name", "issuer")

    record_id = _text(_first(row, "sedi_transaction_id", "transaction_id", "record_id", "id"))
    if not record_id:
        record_id = fingerprint(
            [security_id, insider_name, type_text, tx_date_raw, quantity, price, security_class]
        )

    return TransactionRecord(
        record_id=record_id,
        security_id=security_id,
        insider_name=insider_name,
        relationship=relationship,
        code=extract_tx_code(type_text),
        transaction_date=parse_date(tx_date_raw),
        filing_date=parse_date(filing_date_raw),
        quantity=quantity,
        price=price,
        currency=currency,
        security_class=security_class,
        balance_after=balance_after,
        issuer_name=_text(issuer_name) or None,
    )
