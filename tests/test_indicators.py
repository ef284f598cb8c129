"""Tests for technical indicators, the candle provider and market classification."""

from __future__ import annotations

import pytest

from decision_core.errors import InsufficientDataError
from decision_core.indicators import MIN_CANDLES, CandleIndicatorProvider, classify_market
from decision_core.indicators.formulas import adx, atr, bollinger_bands, macd, rsi, sma


class TestRSI:
    def test_insufficient_data_returns_none(self):
        assert rsi([float(i) for i in range(14)], period=14) is None
        assert rsi([], period=14) is None

    def test_all_gains_returns_100(self):
        assert rsi([float(i) for i in range(20)], period=14) == 100.0

    def test_all_losses_returns_0(self):
        assert rsi([float(20 - i) for i in range(20)], period=14) == 0.0

    def test_alternating_around_50(self):
        closes = []
        price = 100.0
        for i in range(30):
            closes.append(price)
            price += 1 if i % 2 == 0 else -1
        result = rsi(closes, period=14)
        assert result is not None
        assert 40 < result < 60


class TestMovingAverages:
    def test_sma_last_window(self):
        assert sma([1.0, 2.0, 3.0, 4.0], 2) == 3.5
        assert sma([1.0], 2) is None

    def test_macd_flat_series_is_zero(self):
        line, signal, hist = macd([100.0] * 40)
        assert line == pytest.approx(0.0)
        assert signal == pytest.approx(0.0)
        assert hist == pytest.approx(0.0)

    def test_macd_insufficient(self):
        assert macd([100.0] * 34) is None

    def test_macd_rising_series_positive(self):
        line, _, _ = macd([100.0 + i for i in range(60)])
        assert line > 0


class TestBollingerBands:
    def test_constant_prices_bands_equal_middle(self):
        lower, middle, upper = bollinger_bands([100.0] * 20, period=20)
        assert lower == middle == upper == 100.0

    def test_symmetric_bands(self):
        lower, middle, upper = bollinger_bands([float(90 + i % 5) for i in range(20)])
        assert upper - middle == pytest.approx(middle - lower)
        assert lower < middle < upper


class TestVolatilityIndicators:
    def test_atr_constant_range(self):
        highs = [101.0] * 20
        lows = [99.0] * 20
        closes = [100.0] * 20
        assert atr(highs, lows, closes, period=14) == pytest.approx(2.0)

    def test_atr_insufficient(self):
        assert atr([1.0] * 5, [1.0] * 5, [1.0] * 5, period=14) is None

    def test_adx_strong_trend_is_high(self):
        closes = [100.0 + i for i in range(60)]
        highs = [c + 0.5 for c in closes]
        lows = [c - 0.5 for c in closes]
        assert adx(highs, lows, closes, period=14) > 50

    def test_adx_needs_two_periods(self):
        assert adx([1.0] * 28, [1.0] * 28, [1.0] * 28, period=14) is None


class TestCandleIndicatorProvider:
    def test_insufficient_candles_raise(self, make_candles):
        provider = CandleIndicatorProvider()
        with pytest.raises(InsufficientDataError) as exc:
            provider.snapshot(make_candles([100.0] * (MIN_CANDLES - 1)))
        assert exc.value.required == MIN_CANDLES
        assert exc.value.available == MIN_CANDLES - 1

    def test_snapshot_fields(self, make_candles):
        closes = [100.0 + (i % 7) for i in range(120)]
        snap = CandleIndicatorProvider().snapshot(make_candles(closes, volume=500.0))
        assert snap.price == closes[-1]
        assert snap.ma7 == pytest.approx(sum(closes[-7:]) / 7)
        assert snap.ma99 == pytest.approx(sum(closes[-99:]) / 99)
        assert snap.bb_lower < snap.bb_middle < snap.bb_upper
        assert 0 <= snap.rsi <= 100
        assert snap.adx is not None
        assert snap.atr is not None and snap.atr > 0
        assert snap.volume == 500.0
        assert snap.volume_ma == pytest.approx(500.0)


class TestClassifyMarket:
    def test_strong_uptrend_normal_volatility(self, make_snapshot):
        state = classify_market(make_snapshot(adx=30.0, atr=2.0))
        assert state.trend == "strong_uptrend"
        assert state.volatility == "normal"
        assert state.strength == "strong"

    def test_weak_downtrend(self, make_snapshot):
        state = classify_market(make_snapshot(ma7=99.0, ma25=100.0, ma99=101.0, adx=22.0))
        assert state.trend == "downtrend"
        assert state.strength == "weak"

    def test_missing_adx_is_sideways(self, make_snapshot):
        state = classify_market(make_snapshot(adx=None))
        assert state.trend == "sideways"
        assert state.strength == "none"

    def test_missing_atr_is_unknown(self, make_snapshot):
        assert classify_market(make_snapshot(atr=None)).volatility == "unknown"

    @pytest.mark.parametrize(
        ("atr_value", "expected"),
        [(1.0, "low"), (2.0, "normal"), (4.0, "high"), (6.0, "extreme")],
    )
    def test_volatility_bands(self, make_snapshot, atr_value, expected):
        assert classify_market(make_snapshot(atr=atr_value)).volatility == expected
