from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from insider_signals.compute.anomaly import AnomalyReport
from insider_signals.compute.classify import Classifier
from insider_signals.compute.consensus import apply_consensus
from insider_signals.compute.escalation import Annotator, annotate_escalated, mark_escalated, should_escalate
from insider_signals.compute.evaluate import evaluate_insider
from insider_signals.compute.filters import dedupe_by_id, filter_recent, group_by_insider, group_by_security
from insider_signals.compute.market_context import MarketLookup, fetch_market_contexts
from insider_signals.compute.probability import score_to_probability
from insider_signals.config import ScoringConfig
from insider_signals.models import MarketContext, Signal, TransactionRecord
from insider_signals.util.normalization import normalize_record
from insider_signals.util.time import utcnow


def _debug(msg: str) -> None:
    print(f"[pipeline] {msg}")


@dataclass
class RunResult:
    signals: List[Signal]
    escalated_securities: List[str]
    anomalies: AnomalyReport = field(default_factory=AnomalyReport)
    records_in: int = 0
    records_scored: int = 0
    scoring_version: str = ""


def normalize_records(raw_records: Iterable[Any]) -> List[TransactionRecord]:
    """Normalize raw rows; TransactionRecords pass through, ungroupable rows are dropped."""
    out: List[TransactionRecord] = []
    for raw in raw_records:
        if isinstance(raw, TransactionRecord):
            out.append(raw)
            continue
        rec = normalize_record(raw)
        if rec is not None:
            out.append(rec)
    return out


def select_reported(signals: Sequence[Signal], is_watchlisted: bool, cfg: ScoringConfig) -> List[Signal]:
    """Watchlisted names report everything; others only meaningful net buying."""
    if is_watchlisted:
        return list(signals)
    return [s for s in signals if s.is_buying and s.score >= cfg.REPORT_MIN_SCORE]


def analyze_security(
    security_id: str,
    records: Sequence[TransactionRecord],
    market_context: Optional[MarketContext],
    is_watchlisted: bool,
    cfg: ScoringConfig,
    *,
    classifier: Optional[Classifier] = None,
    anomalies: Optional[AnomalyReport] = None,
) -> Tuple[List[Signal], bool]:
    """Evaluate every insider of one security, then consensus + escalation.

    Returns (reported signals, escalate?).
    """
    classifier = classifier or Classifier(cfg.CODES)

    raw_signals: List[Signal] = []
    for _, insider_records in group_by_insider(records).items():
        sig = evaluate_insider(
            security_id,
            insider_records,
            market_context,
            is_watchlisted,
            cfg,
            classifier=classifier,
            anomalies=anomalies,
        )
        if sig is not None:
            raw_signals.append(sig)

    adjusted = apply_consensus(raw_signals, cfg)
    escalate = should_escalate(adjusted, is_watchlisted, cfg)

    reported = select_reported(adjusted, is_watchlisted, cfg)
    if escalate:
        reported = mark_escalated(reported)
    return reported, escalate


def analyze(
    raw_records: Iterable[Any],
    market_lookup: Optional[MarketLookup] = None,
    watchlist: Iterable[str] = (),
    cfg: Optional[ScoringConfig] = None,
    *,
    now: Optional[datetime] = None,
    market_contexts: Optional[Mapping[str, Optional[MarketContext]]] = None,
    timeout_seconds: Optional[float] = None,
    max_workers: Optional[int] = None,
    annotator: Optional[Annotator] = None,
) -> RunResult:
    """Run the scoring pipeline over one batch of records.

    Steps: normalize -> lookback -> dedupe -> per security (market context, evaluate,
    consensus, escalation) -> probability -> rank by score (descending, stable)
    -> annotate escalated securities (only when an annotator is given).

    `market_contexts` skips the lookup for the securities it contains.
    Unset market data limits come from load_config().
    """
    cfg = cfg or ScoringConfig()
    now = now or utcnow()
    watch = {str(t).strip().upper() for t in watchlist if str(t).strip()}

    records = normalize_records(raw_records)
    records_in = len(records)
    recent = filter_recent(records, cfg.LOOKBACK_DAYS, now)
    unique = dedupe_by_id(recent)
    by_security = group_by_security(unique)

    _debug(
        f"records={records_in} recent={len(recent)} unique={len(unique)} "
        f"securities={len(by_security)} scoring_version={cfg.SCORING_VERSION}"
    )

    contexts: dict[str, Optional[MarketContext]] = dict(market_contexts or {})
    missing = [sid for sid in by_security if sid not in contexts]
    if missing:
        contexts.update(
            fetch_market_contexts(
                missing,
                market_lookup,
                timeout_seconds=timeout_seconds,
                max_workers=max_workers,
            )
        )

    classifier = Classifier(cfg.CODES)
    anomalies = AnomalyReport()
    all_signals: List[Signal] = []
    escalated: List[str] = []

    for security_id, sec_records in by_security.items():
        is_watchlisted = security_id in watch
        signals, escalate = analyze_security(
            security_id,
            sec_records,
            contexts.get(security_id),
            is_watchlisted,
            cfg,
            classifier=classifier,
            anomalies=anomalies,
        )
        if escalate:
            escalated.append(security_id)
        all_signals.extend(signals)

        excluded = anomalies.by_security.get(security_id, 0)
        _debug(
            f"security={security_id} records={len(sec_records)} signals={len(signals)} "
            f"escalate={escalate} watchlisted={is_watchlisted} "
            f"market_context={'yes' if contexts.get(security_id) else 'no'} anomalies={excluded}"
        )

    if anomalies.total:
        _debug(f"Excluded {anomalies.total} anomalous records: {anomalies.by_kind}")

    with_prob = [
        s.with_probability(score_to_probability(s.score, cfg.PROBABILITY_MIDPOINT, cfg.PROBABILITY_SCALE))
        for s in all_signals
    ]
    ranked = sorted(with_prob, key=lambda s: -s.score)
    if annotator is not None:
        ranked = annotate_escalated(ranked, annotator)

    return RunResult(
        signals=ranked,
        escalated_securities=escalated,
        anomalies=anomalies,
        records_in=records_in,
        records_scored=len(unique),
        scoring_version=cfg.SCORING_VERSION,
    )


def score_signals(
    raw_records: Iterable[Any],
    market_lookup: Optional[MarketLookup] = None,
    watchlist: Iterable[str] = (),
    cfg: Optional[ScoringConfig] = None,
    **kwargs: Any,
) -> List[Signal]:
    """Ranked signals only (see analyze)."""
    return analyze(raw_records, market_lookup, watchlist, cfg, **kwargs).signals
