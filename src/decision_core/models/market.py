"""Market input models — candles, indicator snapshots, market-state classification."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_TIMEFRAMES = (
    "1m", "3m", "5m", "15m", "30m",
    "1H", "2H", "4H", "6H", "12H",
    "1D", "1W", "1M",
)


class Candle(BaseModel):
    """One candlestick bar."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


class IndicatorSnapshot(BaseModel):
    """Current indicator values for one (symbol, timeframe).

    ``adx``, ``atr``, ``volume`` and ``volume_ma`` are optional: detectors
    that need them skip when they are absent instead of assuming a default.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    ma7: float
    ma25: float
    ma99: float
    rsi: float = Field(ge=0.0, le=100.0)
    macd: float
    macd_signal: float
    macd_histogram: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    price: float = Field(gt=0.0)
    adx: float | None = None
    atr: float | None = None
    volume: float | None = Field(default=None, ge=0.0)
    volume_ma: float | None = Field(default=None, ge=0.0)


class MarketState(BaseModel):
    """Coarse classification of current market conditions."""

    model_config = ConfigDict(frozen=True)

    trend: Literal["strong_uptrend", "uptrend", "sideways", "downtrend", "strong_downtrend"] = "sideways"
    volatility: Literal["low", "normal", "high", "extreme", "unknown"] = "unknown"
    strength: Literal["strong", "weak", "none"] = "none"
