from __future__ import annotations

import math
from typing import List, Sequence

from insider_signals.config import ScoringConfig
from insider_signals.models import Signal, TxCategory


REASON_ROBOT_CONSENSUS = "Robot Consensus"


def _consensus_reason(n: int) -> str:
    return f"Consensus ({n})"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def counts_as_buyer(sig: Signal, cfg: ScoringConfig) -> bool:
    """Buying signal large enough to count toward a cluster."""
    if not sig.is_buying:
        return False
    return sig.net_cash > cfg.CONSENSUS_MIN_NET_CASH or sig.score > cfg.CONSENSUS_MIN_SCORE


def consensus_multiplier(n: int, cfg: ScoringConfig) -> float:
    """1 + min((n - 1) * step, cap); never below 1."""
    if n <= 1:
        return 1.0
    return 1.0 + min((n - 1) * cfg.CONSENSUS_STEP, cfg.CONSENSUS_CAP)


def is_robot_consensus(buyers: Sequence[Signal], cfg: ScoringConfig) -> bool:
    """Majority of buyers are plan purchases: synchronized DRIP/ESPP, not conviction."""
    if not buyers:
        return False
    plan = sum(1 for s in buyers if s.category == TxCategory.PLAN_BUY)
    return (plan / len(buyers)) > cfg.ROBOT_MAJORITY_THRESHOLD


def apply_consensus(signals: Sequence[Signal], cfg: ScoringConfig) -> List[Signal]:
    """Re-weight one security's signals by how many insiders are buying.

    Deterministic cluster rule:
    - n = number of buying insiders that clear the size/score floor.
    - n <= 1: nothing changes.
    - plan buyers > ROBOT_MAJORITY_THRESHOLD of n: every buying signal takes CLUSTER_PENALTY.
    - otherwise every buying signal is scaled by the capped consensus multiplier.

    Non-buying signals pass through untouched; input order is preserved.
    """
    buyers = [s for s in signals if counts_as_buyer(s, cfg)]
    n = len(buyers)
    if n <= 1:
        return list(signals)

    out: List[Signal] = []
    if is_robot_consensus(buyers, cfg):
        for s in signals:
            if s.is_buying:
                s = s.with_score(s.score + cfg.CLUSTER_PENALTY, REASON_ROBOT_CONSENSUS)
            out.append(s)
        return out

    multiplier = consensus_multiplier(n, cfg)
    for s in signals:
        if s.is_buying:
            s = s.with_score(_round_half_up(s.score * multiplier), _consensus_reason(n))
        out.append(s)
    return out
