import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Comma separated list; blank entries are ignored."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    items = tuple(x.strip() for x in raw.split(",") if x.strip())
    return items if items else default


def _env_fx_rates(name: str, default: Dict[str, float]) -> Dict[str, float]:
    """Parse `USD:1.40,EUR:1.52` into {"USD": 1.4, "EUR": 1.52}."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return dict(default)
    out: Dict[str, float] = {}
    for part in raw.split(","):
        if ":" not in part:
            continue
        code, rate = part.split(":", 1)
        try:
            out[code.strip().upper()] = float(rate)
        except Exception:
            continue
    return out if out else dict(default)


@dataclass(frozen=True)
class Config:
    """Runtime configuration for the collaborators around the scoring core.

    IMPORTANT: Provide API keys via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # EODHD (market context provider)
    EODHD_API_KEY: str | None = os.environ.get("EODHD_API_KEY")
    EODHD_BASE_URL: str = os.environ.get("EODHD_BASE_URL", "https://eodhd.com/api")

    # Exchange suffixes tried (in order) when a ticker has none: TSX Venture, TSX, CSE.
    EODHD_PREFERRED_EXCHANGES: Tuple[str, ...] = _env_list("EODHD_PREFERRED_EXCHANGES", ("V", "TO", "CN"))

    # Quotes in any other currency are rejected (they belong to a cross-listing).
    MARKET_CURRENCY: str = os.environ.get("MARKET_CURRENCY", "CAD")

    # Market data fetches are bounded; a slow provider degrades to "no context".
    MARKET_DATA_TIMEOUT_SECONDS: float = _env_float("MARKET_DATA_TIMEOUT_SECONDS", 10.0)
    MARKET_DATA_WORKERS: int = _env_int("MARKET_DATA_WORKERS", 4)
    ENABLE_MARKET_DATA: bool = _env_bool("ENABLE_MARKET_DATA", True) is True

    # Inputs for scripts/score_records.py
    WATCHLIST_PATH: str = os.environ.get("WATCHLIST_PATH", "./watchlist.json")
    SCORING_CONFIG_PATH: str | None = os.environ.get("SCORING_CONFIG_PATH") or None


@dataclass(frozen=True)
class CodeTable:
    """Transaction code -> category tables (SEDI codes by default).

    Codes not listed anywhere classify as UNKNOWN, which scores like noise.
    """

    PUBLIC_BUY: Tuple[str, ...] = _env_list("SCORING_CODES_PUBLIC_BUY", ("10",))
    PRIVATE_BUY: Tuple[str, ...] = _env_list("SCORING_CODES_PRIVATE_BUY", ("11", "16"))
    PLAN_BUY: Tuple[str, ...] = _env_list("SCORING_CODES_PLAN_BUY", ("30", "31"))
    EXERCISE: Tuple[str, ...] = _env_list("SCORING_CODES_EXERCISE", ("51", "54", "57", "59"))
    GRANT: Tuple[str, ...] = _env_list("SCORING_CODES_GRANT", ("50", "52", "53", "55", "56"))
    NOISE: Tuple[str, ...] = _env_list("SCORING_CODES_NOISE", ("90", "97", "99", "00", "35", "37", "38"))


@dataclass(frozen=True)
class ScoringConfig:
    """Scoring weights, thresholds and code tables for one run.

    Scores are only comparable between runs that share SCORING_VERSION.
    Bump it whenever a weight or threshold default changes.
    """

    SCORING_VERSION: str = os.environ.get("SCORING_VERSION", "scoring_v3")

    # -----------------
    # Window
    # -----------------
    LOOKBACK_DAYS: int = _env_int("SCORING_LOOKBACK_DAYS", 30)

    # Net buyers below this (local currency) are dropped unless watchlisted.
    MIN_NET_CASH: float = _env_float("SCORING_MIN_NET_CASH", 5000.0)

    # -----------------
    # Base scores by buy category
    # -----------------
    PREMIUM_COMMON_BUY: int = _env_int("SCORING_PREMIUM_COMMON_BUY", 80)
    BASE_MARKET_BUY: int = _env_int("SCORING_BASE_MARKET_BUY", 50)
    BASE_PRIVATE_BUY: int = _env_int("SCORING_BASE_PRIVATE_BUY", 15)
    BASE_PLAN_BUY: int = _env_int("SCORING_BASE_PLAN_BUY", 5)
    BASE_EXERCISE: int = _env_int("SCORING_BASE_EXERCISE", 5)

    # -----------------
    # Bonuses / penalties
    # -----------------
    RANK_BONUS: int = _env_int("SCORING_RANK_BONUS", 25)
    SIZE_BONUS: int = _env_int("SCORING_SIZE_BONUS", 20)
    CONVICTION_BONUS: int = _env_int("SCORING_CONVICTION_BONUS", 30)
    PREMIUM_BUY_BONUS: int = _env_int("SCORING_PREMIUM_BUY_BONUS", 25)
    DISCOUNT_PENALTY: int = _env_int("SCORING_DISCOUNT_PENALTY", -30)
    UPTREND_BONUS: int = _env_int("SCORING_UPTREND_BONUS", 10)
    DILUTION_PENALTY: int = _env_int("SCORING_DILUTION_PENALTY", -40)
    CLUSTER_PENALTY: int = _env_int("SCORING_CLUSTER_PENALTY", -50)

    # -----------------
    # Size / price thresholds
    # -----------------
    LARGE_SIZE: float = _env_float("SCORING_LARGE_SIZE", 50000.0)
    SIGNIFICANT_IMPACT_RATIO: float = _env_float("SCORING_SIGNIFICANT_IMPACT_RATIO", 0.001)  # 0.1% of market cap
    PREMIUM_THRESHOLD: float = _env_float("SCORING_PREMIUM_THRESHOLD", 0.05)
    DEEP_DISCOUNT_THRESHOLD: float = _env_float("SCORING_DEEP_DISCOUNT_THRESHOLD", 0.30)
    CONVICTION_RATIO: float = _env_float("SCORING_CONVICTION_RATIO", 0.25)  # bought / holdings before

    # -----------------
    # Currency
    # -----------------
    LOCAL_CURRENCY: str = os.environ.get("SCORING_LOCAL_CURRENCY", "CAD")
    # Read-only view; overrides go through scoring_config_from_dict.
    FX_RATES: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType(_env_fx_rates("SCORING_FX_RATES", {"USD": 1.40}))
    )

    # -----------------
    # Anomaly sanity bounds
    # -----------------
    MAX_PRICE_DISCREPANCY: float = _env_float("SCORING_MAX_PRICE_DISCREPANCY", 5.0)
    MAX_CAP_IMPACT: float = _env_float("SCORING_MAX_CAP_IMPACT", 0.10)
    PRICE_VOLUME_TOLERANCE: float = _env_float("SCORING_PRICE_VOLUME_TOLERANCE", 1.0)
    PRICE_VOLUME_MIN_PRICE: float = _env_float("SCORING_PRICE_VOLUME_MIN_PRICE", 100.0)

    # -----------------
    # Consensus
    # -----------------
    CONSENSUS_STEP: float = _env_float("SCORING_CONSENSUS_STEP", 0.2)
    CONSENSUS_CAP: float = _env_float("SCORING_CONSENSUS_CAP", 2.0)
    ROBOT_MAJORITY_THRESHOLD: float = _env_float("SCORING_ROBOT_MAJORITY_THRESHOLD", 0.5)
    CONSENSUS_MIN_NET_CASH: float = _env_float("SCORING_CONSENSUS_MIN_NET_CASH", 3000.0)
    CONSENSUS_MIN_SCORE: float = _env_float("SCORING_CONSENSUS_MIN_SCORE", 15.0)

    # -----------------
    # Escalation / reporting
    # -----------------
    ESCALATION_TRIGGER_SCORE: float = _env_float("SCORING_ESCALATION_TRIGGER_SCORE", 90.0)
    REPORT_MIN_SCORE: float = _env_float("SCORING_REPORT_MIN_SCORE", 20.0)

    # Sigmoid mapping score -> [0, 100]
    PROBABILITY_MIDPOINT: float = _env_float("SCORING_PROBABILITY_MIDPOINT", 50.0)
    PROBABILITY_SCALE: float = _env_float("SCORING_PROBABILITY_SCALE", 20.0)

    # -----------------
    # Text matching (case-insensitive substrings)
    # -----------------
    RANK_KEYWORDS: Tuple[str, ...] = _env_list("SCORING_RANK_KEYWORDS", ("director", "officer"))
    COMMON_CLASS_KEYWORDS: Tuple[str, ...] = _env_list("SCORING_COMMON_CLASS_KEYWORDS", ("common", "voting"))

    CODES: CodeTable = field(default_factory=CodeTable)


def load_config() -> Config:
    return Config()


def _str_tuple(key: str, value: Any) -> Tuple[str, ...]:
    """List-valued override: a bare string is one entry, not a sequence of characters."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if not isinstance(value, (list, tuple)):
        raise RuntimeError(f"{key} override must be a list of strings, got {value!r}")
    return tuple(str(v).strip() for v in value if str(v).strip())


def _coerce_scalar(key: str, current: Any, value: Any) -> Any:
    """Coerce an override to the type of the current value; int weights reject fractions."""
    if isinstance(value, bool):
        raise RuntimeError(f"Invalid value for {key}: {value!r}")
    try:
        if isinstance(current, int):
            f = float(value)
            if not f.is_integer():
                raise ValueError("not an integer")
            return int(f)
        return type(current)(value)
    except Exception:
        raise RuntimeError(f"Invalid value for {key}: {value!r}")


def scoring_config_from_dict(data: Dict[str, Any], base: Optional[ScoringConfig] = None) -> ScoringConfig:
    """Return a copy of `base` with the given overrides applied.

    Keys are ScoringConfig field names. CODES takes a mapping of category -> codes
    (a list, or a single code as a string) and replaces only the categories it names.
    """
    base = base or ScoringConfig()
    known = {f.name for f in fields(ScoringConfig)}
    changes: Dict[str, Any] = {}

    for key, value in data.items():
        if key not in known:
            raise RuntimeError(f"Unknown scoring config key: {key}")

        if key == "CODES":
            if not isinstance(value, dict):
                raise RuntimeError("CODES override must be a mapping of category -> codes")
            code_fields = {f.name for f in fields(CodeTable)}
            code_changes: Dict[str, Tuple[str, ...]] = {}
            for cat, codes in value.items():
                cat_u = str(cat).strip().upper()
                if cat_u not in code_fields:
                    raise RuntimeError(f"Unknown code category: {cat}")
                code_changes[cat_u] = _str_tuple(f"CODES.{cat_u}", codes)
            changes[key] = replace(base.CODES, **code_changes)
        elif key == "FX_RATES":
            if not isinstance(value, dict):
                raise RuntimeError("FX_RATES override must be a mapping of currency -> rate")
            try:
                rates = {str(k).strip().upper(): float(v) for k, v in value.items()}
            except Exception:
                raise RuntimeError(f"Invalid value for FX_RATES: {value!r}")
            changes[key] = MappingProxyType(rates)
        elif key in ("RANK_KEYWORDS", "COMMON_CLASS_KEYWORDS"):
            changes[key] = _str_tuple(key, value)
        else:
            changes[key] = _coerce_scalar(key, getattr(base, key), value)

    return replace(base, **changes)


def load_scoring_config(path: Optional[str] = None) -> ScoringConfig:
    """Build the scoring config: env-backed defaults plus an optional JSON override file."""
    if not path:
        return ScoringConfig()

    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise RuntimeError(f"Could not read scoring config {p}: {e}")
    if not isinstance(data, dict):
        raise RuntimeError(f"Scoring config {p} must contain a JSON object")
    return scoring_config_from_dict(data)
