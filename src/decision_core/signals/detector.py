"""Event detector — emits signals on state transitions between two snapshots.

Every detection compares the previous snapshot for a (symbol, timeframe)
with the current one. A crossover fires only on the tick where the relative
ordering of its two quantities flips; a condition that merely persists stays
silent. The detector never touches the history store itself.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from decision_core.config.schema import DetectorConfig
from decision_core.models import Candle, IndicatorSnapshot, MarketState, Signal, SignalType
from decision_core.models.signal import SignalDirection

log = structlog.get_logger("event_detector")

_UPTRENDS = {"strong_uptrend", "uptrend"}
_DOWNTRENDS = {"strong_downtrend", "downtrend"}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class SignalIdFactory:
    """Unique signal ids: type, symbol, timeframe, epoch ms and a monotonic counter."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self, signal_type: SignalType, symbol: str, timeframe: str) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{signal_type.value}_{symbol}_{timeframe}_{int(time.time() * 1000)}_{n}"


class EventDetector:
    """Stateless transition detector. Configuration and the id factory are injected."""

    def __init__(
        self,
        config: DetectorConfig | None = None,
        ids: SignalIdFactory | None = None,
    ) -> None:
        self.config = config or DetectorConfig()
        self.ids = ids or SignalIdFactory()

    # ── Entry point ───────────────────────────────────────────

    def detect(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        *,
        recent_candles: Sequence[Candle] = (),
        market_state: MarketState | None = None,
        ts: datetime | None = None,
    ) -> list[Signal]:
        """Run every detection against the same ``(prev, curr)`` pair."""
        ts = ts or datetime.now(timezone.utc)
        closes = [c.close for c in recent_candles]
        trend_open = self.trend_gate_open(curr)

        signals: list[Signal] = []
        if trend_open:
            signals += self.detect_ma_crossovers(symbol, timeframe, prev, curr, ts)
        signals += self.detect_rsi(symbol, timeframe, prev, curr, market_state, ts)
        if trend_open:
            signals += self.detect_macd_cross(symbol, timeframe, prev, curr, ts)
        signals += self.detect_bollinger_touch(symbol, timeframe, prev, curr, closes, ts)
        signals += self.detect_bollinger_breakout(symbol, timeframe, prev, curr, ts)
        signals += self.detect_volume_spike(symbol, timeframe, prev, curr, ts)

        if not trend_open:
            log.debug("trend_detections_gated", symbol=symbol, timeframe=timeframe, adx=curr.adx)
        return signals

    def trend_gate_open(self, curr: IndicatorSnapshot) -> bool:
        """Whether trend-type detections (MA, MACD) may run for this snapshot."""
        if not self.config.enable_adx_filter:
            return True
        if curr.adx is None:
            return self.config.missing_adx_policy == "allow"
        return curr.adx >= self.config.min_adx

    # ── Signal construction ───────────────────────────────────

    def _emit(
        self,
        signal_type: SignalType,
        direction: SignalDirection,
        symbol: str,
        timeframe: str,
        strength: float,
        ts: datetime,
        price: float | None,
        indicators: dict[str, float],
    ) -> Signal:
        return Signal(
            id=self.ids.next_id(signal_type, symbol, timeframe),
            type=signal_type,
            direction=direction,
            symbol=symbol,
            timeframe=timeframe,
            strength=_clamp(strength),
            timestamp=ts,
            price=price,
            indicators=indicators,
        )

    # ── Trend detections ──────────────────────────────────────

    def detect_ma_crossovers(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        ts: datetime,
    ) -> list[Signal]:
        if prev is None:
            return []

        w = self.config.weights
        mas = {"ma7": curr.ma7, "ma25": curr.ma25, "ma99": curr.ma99}
        pairs = (
            ("ma7", "ma25", SignalType.MA_7_25_CROSSOVER, SignalType.MA_7_25_CROSSUNDER,
             w.ma_short_scale, w.ma_short_weight),
            ("ma25", "ma99", SignalType.MA_25_99_CROSSOVER, SignalType.MA_25_99_CROSSUNDER,
             w.ma_long_scale, w.ma_long_weight),
        )

        signals: list[Signal] = []
        for fast, slow, up_type, down_type, scale, weight in pairs:
            p_fast, p_slow = getattr(prev, fast), getattr(prev, slow)
            c_fast, c_slow = getattr(curr, fast), getattr(curr, slow)
            if c_slow == 0:
                continue
            deviation = abs(c_fast - c_slow) / abs(c_slow)
            strength = min(1.0, deviation * scale) * weight

            if p_fast <= p_slow and c_fast > c_slow:
                signals.append(self._emit(
                    up_type, "bullish", symbol, timeframe, strength, ts, curr.price, mas,
                ))
            elif p_fast >= p_slow and c_fast < c_slow:
                signals.append(self._emit(
                    down_type, "bearish", symbol, timeframe, strength, ts, curr.price, mas,
                ))
        return signals

    def detect_macd_cross(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        ts: datetime,
    ) -> list[Signal]:
        if prev is None:
            return []

        w = self.config.weights
        diff = abs(curr.macd - curr.macd_signal) / (abs(curr.macd_signal) or 1.0)
        strength = min(
            1.0, diff * w.macd_diff_scale + abs(curr.macd_histogram) * w.macd_histogram_scale,
        ) * w.macd_weight
        values = {
            "macd": curr.macd,
            "macd_signal": curr.macd_signal,
            "macd_histogram": curr.macd_histogram,
        }

        if prev.macd <= prev.macd_signal and curr.macd > curr.macd_signal:
            return [self._emit(
                SignalType.MACD_BULLISH_CROSS, "bullish", symbol, timeframe, strength, ts, curr.price, values,
            )]
        if prev.macd >= prev.macd_signal and curr.macd < curr.macd_signal:
            return [self._emit(
                SignalType.MACD_BEARISH_CROSS, "bearish", symbol, timeframe, strength, ts, curr.price, values,
            )]
        return []

    # ── Reversal detections (exempt from the trend gate) ──────

    def rsi_thresholds(self, market_state: MarketState | None) -> tuple[float, float]:
        """(oversold, overbought), widened in the direction of a prevailing trend."""
        oversold = self.config.rsi_oversold
        overbought = self.config.rsi_overbought
        if market_state is not None:
            if market_state.trend in _UPTRENDS:
                overbought = self.config.rsi_trend_overbought
            elif market_state.trend in _DOWNTRENDS:
                oversold = self.config.rsi_trend_oversold
        return oversold, overbought

    def detect_rsi(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        market_state: MarketState | None,
        ts: datetime,
    ) -> list[Signal]:
        w = self.config.weights
        oversold, overbought = self.rsi_thresholds(market_state)
        rsi = curr.rsi
        values = {"rsi": rsi}
        signals: list[Signal] = []

        # Zone signals fire on entry or on a fresh extreme inside the zone
        if rsi < oversold and (prev is None or prev.rsi >= oversold or rsi < prev.rsi):
            signals.append(self._emit(
                SignalType.RSI_OVERSOLD, "bullish", symbol, timeframe,
                (oversold - rsi) / w.rsi_depth_scale, ts, curr.price, values,
            ))
        if rsi > overbought and (prev is None or prev.rsi <= overbought or rsi > prev.rsi):
            signals.append(self._emit(
                SignalType.RSI_OVERBOUGHT, "bearish", symbol, timeframe,
                (rsi - overbought) / w.rsi_depth_scale, ts, curr.price, values,
            ))

        if prev is not None:
            if prev.rsi <= 50 < rsi:
                signals.append(self._emit(
                    SignalType.RSI_NEUTRAL_CROSS_UP, "bullish", symbol, timeframe,
                    (rsi - 50) / w.rsi_neutral_scale, ts, curr.price, values,
                ))
            elif prev.rsi >= 50 > rsi:
                signals.append(self._emit(
                    SignalType.RSI_NEUTRAL_CROSS_DOWN, "bearish", symbol, timeframe,
                    (50 - rsi) / w.rsi_neutral_scale, ts, curr.price, values,
                ))
        return signals

    # ── Bollinger bands ───────────────────────────────────────

    def _touch_confirmed(self, closes: Sequence[float], band: float, side: str) -> bool:
        tol = self.config.confirmation_tolerance
        if side == "lower":
            return all(c <= band * (1 + tol) for c in closes)
        return all(c >= band * (1 - tol) for c in closes)

    def _newly_confirmed(
        self,
        closes: Sequence[float],
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        side: str,
    ) -> bool:
        k = self.config.price_confirmation
        band_now = curr.bb_lower if side == "lower" else curr.bb_upper
        if not self._touch_confirmed(closes[-k:], band_now, side):
            return False
        if prev is None:
            return True
        if len(closes) <= k:
            # Without the earlier window a sustained touch cannot be told apart
            # from a new one.
            return False
        band_before = prev.bb_lower if side == "lower" else prev.bb_upper
        return not self._touch_confirmed(closes[-k - 1:-1], band_before, side)

    def detect_bollinger_touch(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        closes: Sequence[float],
        ts: datetime,
    ) -> list[Signal]:
        """Band touches confirmed by the last ``price_confirmation`` closes.

        Without enough recent closes to fill the confirmation window the
        detection is skipped. Once a previous snapshot exists one more close
        is needed, so a sustained touch fires only on the tick it is confirmed.
        """
        if len(closes) < self.config.price_confirmation:
            return []

        w = self.config.weights
        tol = self.config.touch_tolerance
        price = curr.price
        bands = {"bb_upper": curr.bb_upper, "bb_middle": curr.bb_middle, "bb_lower": curr.bb_lower}
        signals: list[Signal] = []

        if price <= curr.bb_lower * (1 + tol) and self._newly_confirmed(closes, prev, curr, "lower"):
            distance = abs(curr.bb_lower - price) / curr.bb_lower
            signals.append(self._emit(
                SignalType.BB_LOWER_TOUCH, "bullish", symbol, timeframe,
                distance * w.bb_touch_scale + w.bb_touch_base, ts, price, bands,
            ))
        if price >= curr.bb_upper * (1 - tol) and self._newly_confirmed(closes, prev, curr, "upper"):
            distance = abs(price - curr.bb_upper) / curr.bb_upper
            signals.append(self._emit(
                SignalType.BB_UPPER_TOUCH, "bearish", symbol, timeframe,
                distance * w.bb_touch_scale + w.bb_touch_base, ts, price, bands,
            ))
        return signals

    def _volume_confirms_breakout(self, curr: IndicatorSnapshot) -> bool:
        if curr.volume is None or curr.volume_ma is None or curr.volume_ma <= 0:
            return False
        return curr.volume > curr.volume_ma * self.config.breakout_volume_multiplier

    def detect_bollinger_breakout(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        ts: datetime,
    ) -> list[Signal]:
        if prev is None or not self._volume_confirms_breakout(curr):
            return []

        w = self.config.weights
        price = curr.price
        bands = {
            "bb_upper": curr.bb_upper,
            "bb_middle": curr.bb_middle,
            "bb_lower": curr.bb_lower,
            "volume": curr.volume,
            "volume_ma": curr.volume_ma,
        }

        if price > curr.bb_upper and prev.price <= prev.bb_upper:
            breakout = (price - curr.bb_upper) / curr.bb_upper
            return [self._emit(
                SignalType.BB_BREAKOUT_UP, "bullish", symbol, timeframe,
                breakout * w.bb_breakout_scale + w.bb_breakout_base, ts, price, bands,
            )]
        if price < curr.bb_lower and prev.price >= prev.bb_lower:
            breakdown = (curr.bb_lower - price) / curr.bb_lower
            return [self._emit(
                SignalType.BB_BREAKOUT_DOWN, "bearish", symbol, timeframe,
                breakdown * w.bb_breakout_scale + w.bb_breakout_base, ts, price, bands,
            )]
        return []

    # ── Volume ────────────────────────────────────────────────

    def detect_volume_spike(
        self,
        symbol: str,
        timeframe: str,
        prev: IndicatorSnapshot | None,
        curr: IndicatorSnapshot,
        ts: datetime,
    ) -> list[Signal]:
        if curr.volume is None or curr.volume_ma is None or curr.volume_ma <= 0:
            return []

        mult = self.config.volume_spike_multiplier
        ratio = curr.volume / curr.volume_ma
        if ratio <= mult:
            return []

        if prev is not None and prev.volume is not None and prev.volume_ma:
            if prev.volume / prev.volume_ma > mult:
                return []

        return [self._emit(
            SignalType.VOLUME_SPIKE, "neutral", symbol, timeframe,
            (ratio - mult) / self.config.weights.volume_spike_range, ts, curr.price,
            {"volume": curr.volume, "volume_ma": curr.volume_ma},
        )]
