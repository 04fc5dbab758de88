"""
Tests for the anomaly filter (corrupted / implausible records).
"""

from insider_signals.compute.anomaly import AnomalyKind, AnomalyReport, check_anomaly
from insider_signals.models import MarketContext


class TestPriceVolumeCollision:
    def test_price_equal_to_volume_is_rejected(self, make_record, cfg):
        rec = make_record(quantity=29906, price=29906)
        assert check_anomaly(rec, None, cfg) == AnomalyKind.PRICE_VOLUME_COLLISION

    def test_within_tolerance_is_rejected(self, make_record, cfg):
        rec = make_record(quantity=-29906, price=29906.5)
        assert check_anomaly(rec, None, cfg) == AnomalyKind.PRICE_VOLUME_COLLISION

    def test_small_price_is_not_a_collision(self, make_record, cfg):
        # price must exceed 100 for the collision rule
        rec = make_record(quantity=100, price=100)
        assert check_anomaly(rec, None, cfg) is None

    def test_normal_record_passes(self, make_record, cfg):
        assert check_anomaly(make_record(), None, cfg) is None


class TestMarketImplausibility:
    def test_price_far_above_market(self, make_record, cfg):
        ctx = MarketContext(price=0.25, market_cap=75_000_000)
        rec = make_record(quantity=1000, price=29.0)
        assert check_anomaly(rec, ctx, cfg) == AnomalyKind.PRICE_DISCREPANCY

    def test_trade_larger_than_cap_fraction(self, make_record, cfg):
        ctx = MarketContext(price=5.0, market_cap=75_000_000)
        rec = make_record(quantity=1_000_000_000, price=4.5)
        assert check_anomaly(rec, ctx, cfg) == AnomalyKind.CAP_IMPACT

    def test_cap_check_uses_fx(self, make_record, cfg):
        # 6M USD * 1.40 = 8.4M > 10% of 80M
        ctx = MarketContext(price=6.0, market_cap=80_000_000)
        rec = make_record(quantity=1_000_000, price=6.0, currency="USD")
        assert check_anomaly(rec, ctx, cfg) == AnomalyKind.CAP_IMPACT

    def test_no_context_skips_market_checks(self, make_record, cfg):
        rec = make_record(quantity=1_000_000_000, price=29.0)
        assert check_anomaly(rec, None, cfg) is None

    def test_missing_fields_skip_checks(self, make_record, cfg):
        ctx = MarketContext(price=None, market_cap=0)
        rec = make_record(quantity=1_000_000_000, price=29.0)
        assert check_anomaly(rec, ctx, cfg) is None


class TestAnomalyReport:
    def test_counts_and_merge(self):
        a = AnomalyReport()
        a.record("AAA", AnomalyKind.CAP_IMPACT)
        a.record("AAA", AnomalyKind.PRICE_VOLUME_COLLISION)
        b = AnomalyReport()
        b.record("BBB", AnomalyKind.CAP_IMPACT)

        a.merge(b)

        assert a.total == 3
        assert a.by_kind == {"cap_impact": 2, "price_volume_collision": 1}
        assert a.by_security == {"AAA": 2, "BBB": 1}
