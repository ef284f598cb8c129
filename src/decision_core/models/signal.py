"""Signal model — discrete market events emitted by the event detector."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    MA_7_25_CROSSOVER = "MA_7_25_CROSSOVER"
    MA_7_25_CROSSUNDER = "MA_7_25_CROSSUNDER"
    MA_25_99_CROSSOVER = "MA_25_99_CROSSOVER"
    MA_25_99_CROSSUNDER = "MA_25_99_CROSSUNDER"
    RSI_OVERSOLD = "RSI_OVERSOLD"
    RSI_OVERBOUGHT = "RSI_OVERBOUGHT"
    RSI_NEUTRAL_CROSS_UP = "RSI_NEUTRAL_CROSS_UP"
    RSI_NEUTRAL_CROSS_DOWN = "RSI_NEUTRAL_CROSS_DOWN"
    MACD_BULLISH_CROSS = "MACD_BULLISH_CROSS"
    MACD_BEARISH_CROSS = "MACD_BEARISH_CROSS"
    BB_LOWER_TOUCH = "BB_LOWER_TOUCH"
    BB_UPPER_TOUCH = "BB_UPPER_TOUCH"
    BB_BREAKOUT_UP = "BB_BREAKOUT_UP"
    BB_BREAKOUT_DOWN = "BB_BREAKOUT_DOWN"
    VOLUME_SPIKE = "VOLUME_SPIKE"


SignalDirection = Literal["bullish", "bearish", "neutral"]


class Signal(BaseModel):
    """A detected market event. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: SignalType
    direction: SignalDirection
    symbol: str
    timeframe: str
    strength: float = Field(ge=0.0, le=1.0)
    timestamp: datetime
    price: float | None = None
    indicators: dict[str, float] = Field(default_factory=dict)
