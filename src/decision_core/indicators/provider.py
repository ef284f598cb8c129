"""Indicator providers — turn a candle history into an IndicatorSnapshot."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from decision_core.errors import InsufficientDataError
from decision_core.indicators import formulas
from decision_core.models import Candle, IndicatorSnapshot

MIN_CANDLES = 99


class IndicatorProvider(Protocol):
    """Anything that can compute the fixed indicator set from raw candles."""

    def snapshot(self, candles: Sequence[Candle]) -> IndicatorSnapshot: ...


class CandleIndicatorProvider:
    """Reference provider computing every snapshot field from candles with numpy.

    Raises InsufficientDataError when fewer than 99 candles are supplied: the
    long-horizon moving average is undefined below that, and a partial
    snapshot would silently degrade every detector downstream.
    """

    def __init__(
        self,
        rsi_period: int = 14,
        bb_period: int = 20,
        bb_std: float = 2.0,
        atr_period: int = 14,
        adx_period: int = 14,
        volume_period: int = 20,
    ) -> None:
        self.rsi_period = rsi_period
        self.bb_period = bb_period
        self.bb_std = bb_std
        self.atr_period = atr_period
        self.adx_period = adx_period
        self.volume_period = volume_period

    def snapshot(self, candles: Sequence[Candle]) -> IndicatorSnapshot:
        if len(candles) < MIN_CANDLES:
            raise InsufficientDataError(MIN_CANDLES, len(candles))

        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        volumes = [c.volume for c in candles]

        macd_line, macd_signal, macd_hist = formulas.macd(closes)
        lower, middle, upper = formulas.bollinger_bands(closes, self.bb_period, self.bb_std)

        return IndicatorSnapshot(
            ma7=formulas.sma(closes, 7),
            ma25=formulas.sma(closes, 25),
            ma99=formulas.sma(closes, 99),
            rsi=formulas.rsi(closes, self.rsi_period),
            macd=macd_line,
            macd_signal=macd_signal,
            macd_histogram=macd_hist,
            bb_upper=upper,
            bb_middle=middle,
            bb_lower=lower,
            price=closes[-1],
            adx=formulas.adx(highs, lows, closes, self.adx_period),
            atr=formulas.atr(highs, lows, closes, self.atr_period),
            volume=volumes[-1],
            volume_ma=formulas.sma(volumes, self.volume_period),
        )
