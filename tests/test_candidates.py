"""Tests for candidate construction from signals and rule recommendations."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from decision_core.config import BracketConfig
from decision_core.models import RuleSignal, Signal, SignalType
from decision_core.validation import bracket_prices, candidate_from_rule_signal, candidate_from_signal

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def _signal(direction: str = "bullish", strength: float = 0.8) -> Signal:
    kind = {
        "bullish": SignalType.MA_7_25_CROSSOVER,
        "bearish": SignalType.MA_7_25_CROSSUNDER,
        "neutral": SignalType.VOLUME_SPIKE,
    }[direction]
    return Signal(
        id=f"BTC-15m-{kind.value}-1",
        type=kind,
        direction=direction,
        symbol="BTC",
        timeframe="15m",
        strength=strength,
        timestamp=NOW,
        price=100.0,
    )


def _rule_signal(signal_type: str = "buy", suggested_price: float | None = 100.0) -> RuleSignal:
    return RuleSignal(
        rule_type="dca",
        signal_type=signal_type,
        strength="moderate",
        symbol="BTC",
        reason="dca: first purchase",
        suggested_price=suggested_price,
        suggested_amount=100.0,
        rule_score=0.4,
        confidence=0.6,
        timestamp=NOW,
    )


class TestBracketPrices:
    def test_buy(self):
        sl, tp = bracket_prices("buy", 100.0, BracketConfig())
        assert sl == pytest.approx(99.85)
        assert tp == pytest.approx(100.2)

    def test_sell(self):
        sl, tp = bracket_prices("sell", 100.0, BracketConfig())
        assert sl == pytest.approx(100.15)
        assert tp == pytest.approx(99.8)


class TestCandidateFromSignal:
    def test_bullish_becomes_buy(self):
        candidate = candidate_from_signal(_signal(), 100.0, 1000.0)
        assert candidate.action == "buy"
        assert candidate.confidence == 0.8
        assert candidate.combined_score == 0.8
        assert candidate.suggested_amount == pytest.approx(130.0)
        assert candidate.stop_loss == pytest.approx(99.85)
        assert candidate.take_profit == pytest.approx(100.2)
        assert candidate.source == "signal"
        assert candidate.source_signals == ["BTC-15m-MA_7_25_CROSSOVER-1"]
        assert candidate.reason == "MA_7_25_CROSSOVER strength=0.80"

    def test_bearish_becomes_sell(self):
        candidate = candidate_from_signal(_signal("bearish"), 100.0, 1000.0)
        assert candidate.action == "sell"
        assert candidate.take_profit < candidate.suggested_price < candidate.stop_loss

    def test_sell_sized_from_held_position(self):
        candidate = candidate_from_signal(_signal("bearish"), 100.0, 1000.0, held=2.0)
        # 2.0 base units * (0.05 + 0.8 * 0.10), not a slice of the balance
        assert candidate.suggested_amount == pytest.approx(0.26)

    def test_sell_without_position_has_nothing_to_sell(self):
        assert candidate_from_signal(_signal("bearish"), 100.0, 1000.0).suggested_amount == 0.0

    def test_neutral_yields_nothing(self):
        assert candidate_from_signal(_signal("neutral"), 100.0, 1000.0) is None

    def test_custom_bracket(self):
        bracket = BracketConfig(stop_loss_pct=0.01, take_profit_pct=0.02, base_fraction=0.1, strength_fraction=0.0)
        candidate = candidate_from_signal(_signal(), 200.0, 500.0, bracket)
        assert candidate.stop_loss == pytest.approx(198.0)
        assert candidate.take_profit == pytest.approx(204.0)
        assert candidate.suggested_amount == pytest.approx(50.0)


class TestCandidateFromRuleSignal:
    def test_buy(self):
        candidate = candidate_from_rule_signal(_rule_signal(), 101.0)
        assert candidate.action == "buy"
        assert candidate.suggested_price == 100.0
        assert candidate.suggested_amount == 100.0
        assert candidate.combined_score == pytest.approx(0.24)
        assert candidate.stop_loss == pytest.approx(99.85)
        assert candidate.source == "rule"
        assert candidate.source_signals == ["dca"]
        assert candidate.reason == "dca: dca: first purchase"

    def test_price_fallback(self):
        candidate = candidate_from_rule_signal(_rule_signal(suggested_price=None), 101.0)
        assert candidate.suggested_price == 101.0
        assert candidate.stop_loss == pytest.approx(101.0 * 0.9985)

    def test_score_passthrough(self):
        assert candidate_from_rule_signal(_rule_signal(), 100.0, score=0.9).combined_score == 0.9

    def test_hold_yields_nothing(self):
        assert candidate_from_rule_signal(_rule_signal("hold"), 100.0) is None

    def test_sell_bracket(self):
        candidate = candidate_from_rule_signal(_rule_signal("sell"), 100.0)
        assert candidate.take_profit < candidate.suggested_price < candidate.stop_loss
