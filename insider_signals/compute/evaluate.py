from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from insider_signals.compute.anomaly import AnomalyReport, check_anomaly
from insider_signals.compute.classify import Classifier, is_qualifying
from insider_signals.config import ScoringConfig
from insider_signals.models import MarketContext, Signal, TransactionRecord, TxCategory
from insider_signals.util.currency import fx_multiplier


# Reason tags (appended in evaluation order)
REASON_PLAN = "Auto-Plan"
REASON_PRIVATE = "Private Placement"
REASON_MARKET_BUY = "Market Buy"
REASON_COMMON = "Common Shares"
REASON_EXERCISE = "Exercise"
REASON_LARGE_SIZE = "Large Size"
REASON_PREMIUM = "Premium"
REASON_DISCOUNT = "Discount"
REASON_UPTREND = "Uptrend"
REASON_TOP_INSIDER = "Top Insider"
REASON_DILUTION = "Potential Dilution"
REASON_NET_SELL = "Net Sell"
REASON_NO_NET_BUYING = "No Net Buying"


def _whale_reason(impact_ratio: float) -> str:
    return f"Whale ({impact_ratio * 100:.2f}% MC)"


def _conviction_reason(pct: float) -> str:
    return f"Conviction (+{pct:.0f}% holdings)"


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    t = (text or "").lower()
    return any(k.lower() in t for k in keywords if k)


def _first_text(values: Sequence[str]) -> str:
    for v in values:
        if v:
            return v
    return ""


def evaluate_insider(
    security_id: str,
    records: Sequence[TransactionRecord],
    market_context: Optional[MarketContext],
    is_watchlisted: bool,
    cfg: ScoringConfig,
    *,
    classifier: Optional[Classifier] = None,
    anomalies: Optional[AnomalyReport] = None,
) -> Optional[Signal]:
    """Score one insider's records for one security.

    Returns None for noise: no records, net sellers, or net buyers below MIN_NET_CASH,
    unless the security is watchlisted (then sells stay visible with a zero score).
    """
    if not records:
        return None

    classify = classifier or Classifier(cfg.CODES)

    buy_volume = 0.0
    buy_cost = 0.0
    sell_proceeds = 0.0
    public_volume = 0.0
    public_cost = 0.0

    has_plan = False
    has_private = False
    has_public = False
    has_public_common = False
    has_exercise = False

    buy_prices: List[float] = []
    buy_dates: List[date] = []
    last_buy: Optional[TransactionRecord] = None

    for r in records:
        cat = classify(r.code)
        if not is_qualifying(cat):
            continue

        kind = check_anomaly(r, market_context, cfg)
        if kind is not None:
            if anomalies is not None:
                anomalies.record(security_id, kind)
            continue

        qty = float(r.quantity or 0.0)
        price = float(r.price or 0.0)
        cash = abs(qty) * price * fx_multiplier(r.currency, cfg)

        if qty > 0:
            buy_cost += cash
            buy_volume += qty
            if price > 0:
                buy_prices.append(price)
            if r.transaction_date is not None:
                buy_dates.append(r.transaction_date)
            # Latest buy leg (by date, then input order) carries the post-trade balance.
            if last_buy is None or (r.transaction_date or date.min) >= (last_buy.transaction_date or date.min):
                last_buy = r

            if cat == TxCategory.PLAN_BUY:
                has_plan = True
            elif cat == TxCategory.PRIVATE_BUY:
                has_private = True
            elif cat == TxCategory.PUBLIC_BUY:
                has_public = True
                public_volume += qty
                public_cost += cash
                if _contains_any(r.security_class, cfg.COMMON_CLASS_KEYWORDS):
                    has_public_common = True
            elif cat == TxCategory.EXERCISE:
                has_exercise = True
        elif qty < 0:
            sell_proceeds += cash

    net_cash = buy_cost - sell_proceeds

    if not is_watchlisted:
        if net_cash <= 0:
            return None
        if net_cash < cfg.MIN_NET_CASH:
            return None

    avg_price = (sum(buy_prices) / len(buy_prices)) if buy_prices else None
    last_trade_date = max(buy_dates) if buy_dates else None
    tx_detail = (
        f"{last_trade_date.isoformat() if last_trade_date else 'N/A'} @ "
        f"{'$%.2f' % avg_price if avg_price is not None else 'N/A'}"
    )

    score = 0
    reasons: List[str] = []
    category: Optional[TxCategory] = None

    if net_cash > 0:
        # Base score by buy category (priority order)
        if has_plan:
            category = TxCategory.PLAN_BUY
            score += cfg.BASE_PLAN_BUY
            reasons.append(REASON_PLAN)
        elif has_private:
            category = TxCategory.PRIVATE_BUY
            score += cfg.BASE_PRIVATE_BUY
            reasons.append(REASON_PRIVATE)
        elif has_public:
            category = TxCategory.PUBLIC_BUY
            reasons.append(REASON_MARKET_BUY)
            if has_public_common:
                score += cfg.PREMIUM_COMMON_BUY
                reasons.append(REASON_COMMON)
            else:
                score += cfg.BASE_MARKET_BUY
        elif has_exercise:
            category = TxCategory.EXERCISE
            score += cfg.BASE_EXERCISE
            reasons.append(REASON_EXERCISE)

        # Size / impact
        mcap = market_context.market_cap if market_context is not None else None
        if mcap is not None and mcap > 0:
            impact = net_cash / mcap
            if impact > cfg.SIGNIFICANT_IMPACT_RATIO:
                score += cfg.SIZE_BONUS * 2
                reasons.append(_whale_reason(impact))
            elif net_cash > cfg.LARGE_SIZE:
                score += cfg.SIZE_BONUS
                reasons.append(REASON_LARGE_SIZE)
        elif net_cash > cfg.LARGE_SIZE:
            score += cfg.SIZE_BONUS
            reasons.append(REASON_LARGE_SIZE)

        if market_context is not None:
            mkt_price = market_context.price

            # Price efficiency: premium is bullish, a deep discount is a warrant deal.
            if has_public and public_volume > 0 and mkt_price is not None and mkt_price > 0:
                paid = public_cost / public_volume
                discount = (mkt_price - paid) / mkt_price
                if discount < -cfg.PREMIUM_THRESHOLD:
                    score += cfg.PREMIUM_BUY_BONUS
                    reasons.append(REASON_PREMIUM)
                elif discount > cfg.DEEP_DISCOUNT_THRESHOLD:
                    score += cfg.DISCOUNT_PENALTY
                    reasons.append(REASON_DISCOUNT)

            if mkt_price is not None and market_context.ma50 is not None and mkt_price > market_context.ma50:
                score += cfg.UPTREND_BONUS
                reasons.append(REASON_UPTREND)

        # Holdings conviction: after = before + bought => before = after - bought
        if last_buy is not None and last_buy.balance_after is not None and buy_volume > 0:
            shares_before = float(last_buy.balance_after) - buy_volume
            if shares_before > 0:
                ratio = buy_volume / shares_before
                if ratio > cfg.CONVICTION_RATIO:
                    score += cfg.CONVICTION_BONUS
                    reasons.append(_conviction_reason(ratio * 100.0))

        if _contains_any(_first_text([r.relationship for r in records]), cfg.RANK_KEYWORDS):
            score += cfg.RANK_BONUS
            reasons.append(REASON_TOP_INSIDER)

        if has_private:
            score += cfg.DILUTION_PENALTY
            reasons.append(REASON_DILUTION)
    else:
        reasons.append(REASON_NET_SELL if net_cash < 0 else REASON_NO_NET_BUYING)

    return Signal(
        security_id=security_id,
        insider=_first_text([r.insider_name for r in records]),
        relationship=_first_text([r.relationship for r in records]),
        score=score,
        net_cash=net_cash,
        reasons=tuple(reasons),
        is_watchlisted=is_watchlisted,
        market_context=market_context,
        category=category,
        buy_volume=buy_volume,
        buy_cost=buy_cost,
        sell_proceeds=sell_proceeds,
        avg_price=avg_price,
        last_trade_date=last_trade_date,
        tx_detail=tx_detail,
    )
