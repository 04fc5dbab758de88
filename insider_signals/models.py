from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Optional, Tuple


class TxCategory(str, Enum):
    """Semantic category of a transaction code."""

    PUBLIC_BUY = "public_buy"  # open-market acquisition/disposition
    PRIVATE_BUY = "private_buy"  # private placement, usually with warrants
    PLAN_BUY = "plan_buy"  # automatic / DRIP purchases
    EXERCISE = "exercise"  # options, warrants, rights
    GRANT = "grant"  # compensation, never paid for
    NOISE = "noise"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TransactionRecord:
    record_id: str
    security_id: str
    insider_name: str
    relationship: str
    code: str
    transaction_date: date | None
    filing_date: date | None
    quantity: float  # positive = acquired, negative = disposed
    price: float
    currency: str
    security_class: str
    balance_after: float | None = None
    issuer_name: str | None = None


@dataclass(frozen=True)
class MarketContext:
    price: float | None = None
    market_cap: float | None = None
    avg_volume: float | None = None
    volume: float | None = None
    ma50: float | None = None
    ma200: float | None = None
    high_52w: float | None = None
    low_52w: float | None = None
    currency: str | None = None
    symbol: str | None = None


@dataclass(frozen=True)
class InsiderKey:
    security_id: str
    insider_key: str


@dataclass(frozen=True)
class Signal:
    """Scored result for one (security, insider) pair.

    Stages never mutate a Signal; each returns a modified copy. `reasons` only ever grows.
    """

    security_id: str
    insider: str
    relationship: str
    score: float
    net_cash: float
    reasons: Tuple[str, ...]
    is_watchlisted: bool = False
    market_context: MarketContext | None = None
    category: TxCategory | None = None

    buy_volume: float = 0.0
    buy_cost: float = 0.0
    sell_proceeds: float = 0.0
    avg_price: float | None = None
    last_trade_date: date | None = None
    tx_detail: str = ""

    escalated: bool = False
    probability: float | None = None

    # Opaque payload from the escalation collaborator (news + commentary). Never read here.
    annotation: Any = None

    @property
    def is_buying(self) -> bool:
        return self.score > 0 and self.net_cash > 0

    def with_score(self, score: float, reason: Optional[str] = None) -> "Signal":
        reasons = self.reasons + (reason,) if reason else self.reasons
        return replace(self, score=score, reasons=reasons)

    def with_reason(self, reason: str) -> "Signal":
        return replace(self, reasons=self.reasons + (reason,))

    def mark_escalated(self) -> "Signal":
        return replace(self, escalated=True)

    def with_probability(self, probability: float) -> "Signal":
        return replace(self, probability=probability)

    def with_annotation(self, annotation: Any) -> "Signal":
        return replace(self, annotation=annotation)
