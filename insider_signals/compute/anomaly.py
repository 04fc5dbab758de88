from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from insider_signals.config import ScoringConfig
from insider_signals.models import MarketContext, TransactionRecord
from insider_signals.util.currency import fx_multiplier


class AnomalyKind(str, Enum):
    PRICE_VOLUME_COLLISION = "price_volume_collision"
    PRICE_DISCREPANCY = "price_discrepancy"
    CAP_IMPACT = "cap_impact"


def check_anomaly(
    record: TransactionRecord,
    market_context: Optional[MarketContext],
    cfg: ScoringConfig,
) -> Optional[AnomalyKind]:
    """Return why a record looks corrupted, or None if it is plausible.

    Checks (either one disqualifies):
    - price ~= volume with a large price: the price field was filled with the share count.
    - with market context: price far above the live price, or a single trade worth more
      than a sizeable slice of the company.

    These are heuristics; a genuine extreme trade can be dropped.
    """
    price = float(record.price or 0.0)
    qty = abs(float(record.quantity or 0.0))

    if abs(price - qty) < cfg.PRICE_VOLUME_TOLERANCE and price > cfg.PRICE_VOLUME_MIN_PRICE:
        return AnomalyKind.PRICE_VOLUME_COLLISION

    if market_context is None:
        return None

    mkt_price = market_context.price
    if mkt_price is not None and mkt_price > 0 and price > mkt_price * cfg.MAX_PRICE_DISCREPANCY:
        return AnomalyKind.PRICE_DISCREPANCY

    mcap = market_context.market_cap
    if mcap is not None and mcap > 0:
        cash = qty * price * fx_multiplier(record.currency, cfg)
        if cash > mcap * cfg.MAX_CAP_IMPACT:
            return AnomalyKind.CAP_IMPACT

    return None


@dataclass
class AnomalyReport:
    """Audit counts of excluded records. Never surfaced as errors."""

    by_kind: Dict[str, int] = field(default_factory=dict)
    by_security: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.by_kind.values())

    def record(self, security_id: str, kind: AnomalyKind) -> None:
        self.by_kind[kind.value] = self.by_kind.get(kind.value, 0) + 1
        self.by_security[security_id] = self.by_security.get(security_id, 0) + 1

    def merge(self, other: "AnomalyReport") -> None:
        for k, n in other.by_kind.items():
            self.by_kind[k] = self.by_kind.get(k, 0) + n
        for s, n in other.by_security.items():
            self.by_security[s] = self.by_security.get(s, 0) + n
