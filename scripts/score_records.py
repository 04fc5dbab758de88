import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from insider_signals.compute.market_context import EodhdMarketContextProvider
from insider_signals.compute.pipeline import analyze
from insider_signals.config import load_config, load_scoring_config


def _load_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        print(f"Could not read {path}: {e}")
        sys.exit(2)


def _load_watchlist(path: Path) -> set[str]:
    """Watchlist file: {"tickers": [...]} or a plain JSON list."""
    if not path.exists():
        print(f"No watchlist file at {path}; continuing without one")
        return set()
    data = _load_json(path)
    tickers = data.get("tickers") if isinstance(data, dict) else data
    if not isinstance(tickers, list):
        print(f"Watchlist {path} has no ticker list; ignoring it")
        return set()
    return {str(t).strip().upper() for t in tickers if str(t).strip()}


def main() -> None:
    p = argparse.ArgumentParser(
        description="Score a batch of insider transaction records and print ranked conviction signals."
    )
    p.add_argument("records", type=str, help="JSON file: list of raw records (or {\"records\": [...]})")
    p.add_argument("--watchlist", type=str, default=None, help="Watchlist JSON (default: WATCHLIST_PATH)")
    p.add_argument("--scoring-config", type=str, default=None, help="JSON overrides for scoring weights/codes")
    p.add_argument("--no-market-data", action="store_true", help="Skip the market data provider")
    p.add_argument("--limit", type=int, default=None, help="Print only the top N signals")
    args = p.parse_args()

    cfg = load_config()
    scoring = load_scoring_config(args.scoring_config or cfg.SCORING_CONFIG_PATH)

    data = _load_json(Path(args.records))
    records = data.get("records") if isinstance(data, dict) else data
    if not isinstance(records, list):
        print("Records file must contain a list of records")
        sys.exit(2)

    watchlist = _load_watchlist(Path(args.watchlist or cfg.WATCHLIST_PATH))

    lookup = None
    if cfg.ENABLE_MARKET_DATA and not args.no_market_data:
        lookup = EodhdMarketContextProvider(cfg)

    result = analyze(
        records,
        lookup,
        watchlist,
        scoring,
        timeout_seconds=cfg.MARKET_DATA_TIMEOUT_SECONDS,
        max_workers=cfg.MARKET_DATA_WORKERS,
    )

    signals = result.signals[: args.limit] if args.limit is not None else result.signals
    print(
        f"Scored {result.records_scored}/{result.records_in} records "
        f"({result.anomalies.total} anomalies) scoring_version={result.scoring_version}"
    )
    if result.escalated_securities:
        print(f"Escalate for deep analysis: {', '.join(result.escalated_securities)}")

    if not signals:
        print("No significant signals found (after filtering).")
        return

    for sig in signals:
        flags = []
        if sig.is_watchlisted:
            flags.append("watchlist")
        if sig.escalated:
            flags.append("escalated")
        flag_str = f" [{', '.join(flags)}]" if flags else ""
        print(f"{sig.security_id} | {sig.insider} ({sig.relationship}){flag_str}")
        print(f"    Score: {sig.score} (p={sig.probability}) | Net: ${sig.net_cash:,.0f} | {sig.tx_detail}")
        print(f"    Reasons: {', '.join(sig.reasons)}")
        ctx = sig.market_context
        if ctx is not None and ctx.market_cap:
            print(f"    Market: ${ctx.price} | Cap ${ctx.market_cap / 1_000_000:.1f}M | AvgVol {ctx.avg_volume}")


if __name__ == "__main__":
    main()
