"""Technical indicators — pure functions on price series."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def sma(values: Sequence[float], period: int) -> float | None:
    """Simple moving average of the last *period* values."""
    if len(values) < period:
        return None
    return float(np.mean(np.asarray(values[-period:], dtype=np.float64)))


def ema_series(values: Sequence[float], period: int) -> np.ndarray:
    """Exponential moving average seeded with the first value."""
    arr = np.asarray(values, dtype=np.float64)
    out = np.empty_like(arr)
    if arr.size == 0:
        return out
    alpha = 2.0 / (period + 1)
    out[0] = arr[0]
    for i in range(1, arr.size):
        out[i] = alpha * arr[i] + (1 - alpha) * out[i - 1]
    return out


def rsi(closes: Sequence[float], period: int = 14) -> float | None:
    """Relative Strength Index (Wilder's smoothing).

    Returns a float in [0, 100] or None if there are fewer than
    ``period + 1`` data points.
    """
    if len(closes) < period + 1:
        return None

    deltas = np.diff(np.asarray(closes, dtype=np.float64))
    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    # Seed with simple average of first *period* changes
    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))

    for g, l in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + g) / period
        avg_loss = (avg_loss * (period - 1) + l) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1 + rs))


def macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[float, float, float] | None:
    """MACD line, signal line and histogram for the latest bar."""
    if len(closes) < slow + signal:
        return None
    line = ema_series(closes, fast) - ema_series(closes, slow)
    signal_line = ema_series(line, signal)
    return float(line[-1]), float(signal_line[-1]), float(line[-1] - signal_line[-1])


def bollinger_bands(
    closes: Sequence[float],
    period: int = 20,
    num_std: float = 2.0,
) -> tuple[float, float, float] | None:
    """Bollinger Bands (SMA +/- num_std * population stdev).

    Returns ``(lower, middle, upper)`` or None if fewer than *period* data
    points are available.
    """
    if len(closes) < period:
        return None

    window = np.asarray(closes[-period:], dtype=np.float64)
    middle = float(np.mean(window))
    offset = float(np.std(window)) * num_std
    return (middle - offset, middle, middle + offset)


def _true_ranges(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    prev_close = closes[:-1]
    return np.maximum.reduce([
        highs[1:] - lows[1:],
        np.abs(highs[1:] - prev_close),
        np.abs(lows[1:] - prev_close),
    ])


def _wilder(values: np.ndarray, period: int) -> np.ndarray:
    """Wilder smoothing seeded with the mean of the first *period* values."""
    out = np.empty(values.size - period + 1)
    out[0] = np.mean(values[:period])
    for i in range(period, values.size):
        out[i - period + 1] = (out[i - period] * (period - 1) + values[i]) / period
    return out


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float | None:
    """Average True Range (Wilder)."""
    if len(closes) < period + 1:
        return None
    tr = _true_ranges(
        np.asarray(highs, dtype=np.float64),
        np.asarray(lows, dtype=np.float64),
        np.asarray(closes, dtype=np.float64),
    )
    return float(_wilder(tr, period)[-1])


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float | None:
    """Average Directional Index (Wilder). Needs ``2 * period + 1`` bars."""
    if len(closes) < 2 * period + 1:
        return None

    h = np.asarray(highs, dtype=np.float64)
    l = np.asarray(lows, dtype=np.float64)
    c = np.asarray(closes, dtype=np.float64)

    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)

    tr_s = _wilder(_true_ranges(h, l, c), period)
    plus_s = _wilder(plus_dm, period)
    minus_s = _wilder(minus_dm, period)

    with np.errstate(divide="ignore", invalid="ignore"):
        plus_di = np.where(tr_s > 0, 100.0 * plus_s / tr_s, 0.0)
        minus_di = np.where(tr_s > 0, 100.0 * minus_s / tr_s, 0.0)
        di_sum = plus_di + minus_di
        dx = np.where(di_sum > 0, 100.0 * np.abs(plus_di - minus_di) / di_sum, 0.0)

    return float(_wilder(dx, period)[-1])
