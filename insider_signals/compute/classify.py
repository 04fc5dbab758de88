from __future__ import annotations

from typing import Dict

from insider_signals.config import CodeTable
from insider_signals.models import TxCategory


# Order matters only when a code is listed in two tables: the first listed category wins.
_TABLE_ORDER = (
    ("PUBLIC_BUY", TxCategory.PUBLIC_BUY),
    ("PRIVATE_BUY", TxCategory.PRIVATE_BUY),
    ("PLAN_BUY", TxCategory.PLAN_BUY),
    ("EXERCISE", TxCategory.EXERCISE),
    ("GRANT", TxCategory.GRANT),
    ("NOISE", TxCategory.NOISE),
)

_NON_QUALIFYING = {TxCategory.GRANT, TxCategory.NOISE, TxCategory.UNKNOWN}


def build_lookup(table: CodeTable) -> Dict[str, TxCategory]:
    lookup: Dict[str, TxCategory] = {}
    for attr, cat in _TABLE_ORDER:
        for code in getattr(table, attr):
            lookup.setdefault(str(code).strip(), cat)
    return lookup


def classify(code: str | None, table: CodeTable) -> TxCategory:
    """Map a normalized transaction code to its category."""
    c = (code or "").strip()
    if not c:
        return TxCategory.UNKNOWN
    return build_lookup(table).get(c, TxCategory.UNKNOWN)


class Classifier:
    """Code classifier bound to one code table (lookup built once per run)."""

    def __init__(self, table: CodeTable):
        self.table = table
        self._lookup = build_lookup(table)

    def __call__(self, code: str | None) -> TxCategory:
        c = (code or "").strip()
        return self._lookup.get(c, TxCategory.UNKNOWN)


def is_qualifying(category: TxCategory) -> bool:
    """Grants and noise never contribute cash; everything else does."""
    return category not in _NON_QUALIFYING
