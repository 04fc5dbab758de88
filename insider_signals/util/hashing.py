import hashlib
from typing import Any, Iterable


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def fingerprint(parts: Iterable[Any]) -> str:
    """Stable short id for a record that arrived without one.

    None renders as an empty field so the same filing always hashes the same way.
    """
    joined = "|".join("" if p is None else str(p).strip() for p in parts)
    return f"fp:{sha256_hex(joined)[:24]}"
