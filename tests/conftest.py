from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

import pytest

from insider_signals.config import ScoringConfig
from insider_signals.models import MarketContext, Signal, TransactionRecord, TxCategory


NOW = datetime(2025, 12, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cfg() -> ScoringConfig:
    return ScoringConfig()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_record():
    """Factory for TransactionRecords; every call gets a fresh id unless one is given."""
    counter = {"n": 0}

    def _make(
        security_id: str = "T.TO",
        insider: str = "Darren Entwistle",
        relationship: str = "4 - Director",
        code: str = "10",
        quantity: float = 10000,
        price: float = 17.5,
        tx_date: Optional[date] = date(2025, 12, 19),
        currency: str = "CAD",
        security_class: str = "Common Shares",
        balance_after: Optional[float] = None,
        record_id: Optional[str] = None,
    ) -> TransactionRecord:
        counter["n"] += 1
        return TransactionRecord(
            record_id=record_id or f"tx-{counter['n']}",
            security_id=security_id,
            insider_name=insider,
            relationship=relationship,
            code=code,
            transaction_date=tx_date,
            filing_date=tx_date,
            quantity=quantity,
            price=price,
            currency=currency,
            security_class=security_class,
            balance_after=balance_after,
        )

    return _make


@pytest.fixture
def make_signal():
    def _make(
        score: float = 100,
        net_cash: float = 100_000,
        insider: str = "Insider",
        category: Optional[TxCategory] = TxCategory.PUBLIC_BUY,
        security_id: str = "ABC",
        reasons: tuple = ("Market Buy",),
        market_context: Optional[MarketContext] = None,
    ) -> Signal:
        return Signal(
            security_id=security_id,
            insider=insider,
            relationship="4 - Director",
            score=score,
            net_cash=net_cash,
            reasons=reasons,
            category=category,
            market_context=market_context,
        )

    return _make
