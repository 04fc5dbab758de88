"""
Tests for the consensus / cluster adjuster.
"""

import pytest

from insider_signals.compute.consensus import (
    REASON_ROBOT_CONSENSUS,
    apply_consensus,
    consensus_multiplier,
    is_robot_consensus,
)
from insider_signals.models import TxCategory


class TestMultiplier:
    def test_single_buyer_is_neutral(self, cfg):
        assert consensus_multiplier(1, cfg) == 1.0
        assert consensus_multiplier(0, cfg) == 1.0

    def test_step_and_cap(self, cfg):
        assert consensus_multiplier(2, cfg) == pytest.approx(1.2)
        assert consensus_multiplier(3, cfg) == pytest.approx(1.4)
        assert consensus_multiplier(20, cfg) == pytest.approx(1.0 + cfg.CONSENSUS_CAP)


class TestApplyConsensus:
    def test_single_buyer_unchanged(self, make_signal, cfg):
        sig = make_signal(score=100)
        assert apply_consensus([sig], cfg) == [sig]

    def test_multi_insider_bonus(self, make_signal, cfg):
        signals = [make_signal(score=100, insider=f"I{i}") for i in range(3)]

        out = apply_consensus(signals, cfg)

        assert [s.score for s in out] == [140, 140, 140]
        assert all(s.reasons == ("Market Buy", "Consensus (3)") for s in out)
        # inputs are untouched
        assert all(s.score == 100 for s in signals)

    def test_rounds_half_up(self, make_signal, cfg):
        out = apply_consensus([make_signal(score=33, insider="a"), make_signal(score=25, insider="b")], cfg)
        assert [s.score for s in out] == [40, 30]  # 39.6 -> 40, 30.0 -> 30

    def test_monotonic_in_number_of_buyers(self, make_signal, cfg):
        previous = None
        for n in range(1, 16):
            signals = [make_signal(score=60, insider=f"I{i}") for i in range(n)]
            first_score = apply_consensus(signals, cfg)[0].score
            if previous is not None:
                assert first_score >= previous
            previous = first_score
        assert previous == round(60 * (1 + cfg.CONSENSUS_CAP))

    def test_small_buyers_do_not_count(self, make_signal, cfg):
        big = make_signal(score=100, insider="big")
        small = make_signal(score=5, net_cash=1000, insider="small")

        out = apply_consensus([big, small], cfg)

        assert out == [big, small]

    def test_non_buying_signals_pass_through(self, make_signal, cfg):
        seller = make_signal(score=0, net_cash=-7500, insider="seller", reasons=("Net Sell",), category=None)
        buyers = [make_signal(score=100, insider="a"), make_signal(score=100, insider="b")]

        out = apply_consensus([seller] + buyers, cfg)

        assert out[0] == seller
        assert [s.score for s in out[1:]] == [120, 120]


class TestRobotConsensus:
    def test_three_of_four_plan_buyers_take_penalty(self, make_signal, cfg):
        plan = [make_signal(score=30, insider=f"plan{i}", category=TxCategory.PLAN_BUY) for i in range(3)]
        public = make_signal(score=100, insider="public")

        out = apply_consensus(plan + [public], cfg)

        assert [s.score for s in out] == [30 + cfg.CLUSTER_PENALTY] * 3 + [100 + cfg.CLUSTER_PENALTY]
        assert all(s.reasons[-1] == REASON_ROBOT_CONSENSUS for s in out)

    def test_exact_half_is_not_robot(self, make_signal, cfg):
        signals = [
            make_signal(score=30, insider="p1", category=TxCategory.PLAN_BUY),
            make_signal(score=30, insider="p2", category=TxCategory.PLAN_BUY),
            make_signal(score=100, insider="a"),
            make_signal(score=100, insider="b"),
        ]
        assert not is_robot_consensus(signals, cfg)

        out = apply_consensus(signals, cfg)

        assert [s.score for s in out] == [48, 48, 160, 160]
        assert out[0].reasons[-1] == "Consensus (4)"
