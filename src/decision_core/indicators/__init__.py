"""Indicator provider interface, reference implementation and market-state classification."""

from decision_core.indicators.market_state import classify_market
from decision_core.indicators.provider import (
    MIN_CANDLES,
    CandleIndicatorProvider,
    IndicatorProvider,
)

__all__ = ["MIN_CANDLES", "CandleIndicatorProvider", "IndicatorProvider", "classify_market"]
