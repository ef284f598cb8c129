"""Market-state classification from an indicator snapshot."""

from __future__ import annotations

from decision_core.models import IndicatorSnapshot, MarketState

STRONG_TREND_ADX = 25.0
WEAK_TREND_ADX = 20.0

# ATR / price boundaries
LOW_VOLATILITY = 0.015
NORMAL_VOLATILITY = 0.03
HIGH_VOLATILITY = 0.05


def classify_market(snapshot: IndicatorSnapshot) -> MarketState:
    """Classify trend, volatility and trend strength.

    Missing ADX means no trend can be asserted; missing ATR yields
    ``volatility="unknown"`` rather than a guessed level.
    """
    adx = snapshot.adx
    strong = adx is not None and adx > STRONG_TREND_ADX
    weak = adx is not None and adx > WEAK_TREND_ADX

    up = snapshot.ma25 > snapshot.ma99
    down = snapshot.ma25 < snapshot.ma99
    strong_up = up and snapshot.ma7 > snapshot.ma25
    strong_down = down and snapshot.ma7 < snapshot.ma25

    if strong and strong_up:
        trend = "strong_uptrend"
    elif strong and strong_down:
        trend = "strong_downtrend"
    elif weak and up:
        trend = "uptrend"
    elif weak and down:
        trend = "downtrend"
    else:
        trend = "sideways"

    if snapshot.atr is None:
        volatility = "unknown"
    else:
        ratio = snapshot.atr / snapshot.price
        if ratio < LOW_VOLATILITY:
            volatility = "low"
        elif ratio < NORMAL_VOLATILITY:
            volatility = "normal"
        elif ratio < HIGH_VOLATILITY:
            volatility = "high"
        else:
            volatility = "extreme"

    if strong:
        strength = "strong"
    elif weak:
        strength = "weak"
    else:
        strength = "none"

    return MarketState(trend=trend, volatility=volatility, strength=strength)
