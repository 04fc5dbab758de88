from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

from insider_signals.config import ScoringConfig
from insider_signals.models import MarketContext, Signal


# annotator(security_id, signals, market_context) -> opaque annotation (news + commentary)
Annotator = Callable[[str, Sequence[Signal], Optional[MarketContext]], Any]


def _debug(msg: str) -> None:
    print(f"[escalation] {msg}")


def max_buying_score(signals: Sequence[Signal]) -> Optional[float]:
    scores = [s.score for s in signals if s.is_buying]
    return max(scores) if scores else None


def should_escalate(signals: Sequence[Signal], is_watchlisted: bool, cfg: ScoringConfig) -> bool:
    """Gate for the expensive downstream analysis (news + LLM commentary).

    Watchlisted securities always escalate, even with no qualifying signal.
    Otherwise the best net-buying score must reach ESCALATION_TRIGGER_SCORE.
    """
    if is_watchlisted:
        return True
    best = max_buying_score(signals)
    return best is not None and best >= cfg.ESCALATION_TRIGGER_SCORE


def mark_escalated(signals: Sequence[Signal]) -> List[Signal]:
    return [s.mark_escalated() for s in signals]


def annotate_escalated(signals: Sequence[Signal], annotator: Annotator) -> List[Signal]:
    """Attach the annotator's output to every escalated signal, one call per security.

    A failing annotator leaves that security's signals un-annotated; it never aborts the batch.
    """
    by_security: Dict[str, List[Signal]] = {}
    for s in signals:
        if s.escalated:
            by_security.setdefault(s.security_id, []).append(s)

    annotations: Dict[str, Any] = {}
    for security_id, group in by_security.items():
        ctx = next((s.market_context for s in group if s.market_context is not None), None)
        try:
            annotations[security_id] = annotator(security_id, group, ctx)
        except Exception as e:
            _debug(f"Annotator failed for {security_id}: {e}")

    out: List[Signal] = []
    for s in signals:
        if s.escalated and annotations.get(s.security_id) is not None:
            s = s.with_annotation(annotations[s.security_id])
        out.append(s)
    return out
