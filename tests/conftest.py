"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from decision_core.models import Candle, IndicatorSnapshot, PositionInfo, PriceData, RuleInput

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)

# Calm uptrend: MAs ordered, MACD above signal, price mid-band, ADX above the gate.
BASE_SNAPSHOT = {
    "ma7": 101.0,
    "ma25": 100.0,
    "ma99": 99.0,
    "rsi": 55.0,
    "macd": 0.5,
    "macd_signal": 0.3,
    "macd_histogram": 0.2,
    "bb_upper": 110.0,
    "bb_middle": 100.0,
    "bb_lower": 90.0,
    "price": 100.0,
    "adx": 30.0,
    "atr": 2.0,
    "volume": 1000.0,
    "volume_ma": 1000.0,
}


@pytest.fixture
def make_snapshot():
    """Factory: IndicatorSnapshot with BASE_SNAPSHOT values overridden by kwargs."""

    def _make(**overrides) -> IndicatorSnapshot:
        return IndicatorSnapshot(**{**BASE_SNAPSHOT, **overrides})

    return _make


@pytest.fixture
def make_candles():
    """Factory: one-minute candles closing at the given prices."""

    def _make(closes, volume: float = 1000.0, start: datetime = NOW) -> list[Candle]:
        first = start - timedelta(minutes=len(closes))
        return [
            Candle(
                timestamp=first + timedelta(minutes=i),
                open=c,
                high=c * 1.001,
                low=c * 0.999,
                close=c,
                volume=volume,
            )
            for i, c in enumerate(closes)
        ]

    return _make


@pytest.fixture
def make_rule_input():
    """Factory: RuleInput from {symbol: price} and {symbol: (amount, avg_cost)}."""

    def _make(
        prices: dict[str, float] | None = None,
        positions: dict[str, tuple[float, float]] | None = None,
        balance: float = 1000.0,
        ts: datetime = NOW,
    ) -> RuleInput:
        return RuleInput(
            prices=[
                PriceData(symbol=s, price=p, timestamp=ts)
                for s, p in (prices or {}).items()
            ],
            positions=[
                PositionInfo(symbol=s, amount=amount, avg_cost=cost)
                for s, (amount, cost) in (positions or {}).items()
            ],
            available_balance=balance,
            timestamp=ts,
        )

    return _make


@pytest.fixture
def balanced_positions() -> dict[str, tuple[float, float]]:
    """Four equal positions worth 1000 each: no single symbol above 25 %."""
    return {s: (1.0, 1000.0) for s in ("BTC", "ETH", "SOL", "XRP")}
