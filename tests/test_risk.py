"""Tests for the risk-control producer."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from decision_core.config import RuleConfig
from decision_core.rules import RiskControlRule, RiskVerdict

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def _rule(**params) -> RiskControlRule:
    return RiskControlRule(RuleConfig(priority=0, params=params))


class TestAssessRisk:
    def test_healthy_portfolio_is_low(self, make_rule_input, balanced_positions):
        assessment = _rule().assess_risk(make_rule_input(positions=balanced_positions, balance=10_000))
        assert assessment.level == "low"
        assert assessment.triggered is False
        assert assessment.total_position_value == 4000
        assert assessment.available_balance == 10_000

    def test_empty_portfolio_is_low(self, make_rule_input):
        assert _rule().assess_risk(make_rule_input()).triggered is False

    def test_max_position_value_is_high(self, make_rule_input, balanced_positions):
        rule = _rule(max_position_value=3000)
        assessment = rule.assess_risk(make_rule_input(positions=balanced_positions, balance=10_000))
        assert assessment.level == "high"
        assert assessment.triggered_rules == ["max_position_value"]

    def test_concentration_is_critical(self, make_rule_input):
        positions = {"BTC": (3.0, 1000.0), "ETH": (1.0, 1000.0)}
        assessment = _rule().assess_risk(make_rule_input(positions=positions, balance=10_000))
        assert assessment.level == "critical"
        assert "symbol_position_ratio:BTC" in assessment.triggered_rules

    def test_drawdown_beyond_emergency_threshold(self, make_rule_input, balanced_positions):
        rule = _rule()
        rule.set_initial_equity(20_000)
        assessment = rule.assess_risk(make_rule_input(positions=balanced_positions, balance=10_000))
        # equity 14 000 vs peak 20 000: 30 % drawdown
        assert assessment.level == "critical"
        assert assessment.triggered_rules == ["max_drawdown", "emergency_stop"]

    def test_moderate_drawdown_is_medium(self, make_rule_input, balanced_positions):
        rule = _rule()
        rule.set_initial_equity(15_000)
        assessment = rule.assess_risk(make_rule_input(positions=balanced_positions, balance=10_000))
        assert assessment.level == "medium"
        assert assessment.triggered is False

    def test_peak_tracks_equity(self, make_rule_input):
        rule = _rule()
        rule.assess_risk(make_rule_input(balance=5000))
        rule.assess_risk(make_rule_input(balance=8000))
        assert rule.status()["peak_equity"] == 8000

    def test_daily_loss_is_critical(self, make_rule_input):
        rule = _rule(max_daily_loss=1000)
        rule.record_trade_result(-1500, NOW - timedelta(hours=1))
        assessment = rule.assess_risk(make_rule_input())
        assert assessment.level == "critical"
        assert "max_daily_loss" in assessment.triggered_rules

    def test_daily_loss_warning_is_medium(self, make_rule_input):
        rule = _rule(max_daily_loss=1000)
        rule.record_trade_result(-800, NOW - timedelta(hours=1))
        assessment = rule.assess_risk(make_rule_input())
        assert assessment.level == "medium"
        assert assessment.triggered is False
        assert assessment.recommendations

    def test_daily_loss_resets_on_new_utc_day(self, make_rule_input):
        rule = _rule(max_daily_loss=1000)
        rule.record_trade_result(-1500, NOW)
        next_day = NOW + timedelta(days=1)
        assessment = rule.assess_risk(make_rule_input(ts=next_day))
        assert assessment.triggered is False
        assert rule.status()["daily_loss"] == 0.0


class TestCanTrade:
    def test_allowed_when_low(self, make_rule_input):
        assert _rule().can_trade(make_rule_input()) == RiskVerdict(allowed=True)

    def test_high_is_allowed_with_warning(self, make_rule_input, balanced_positions):
        verdict = _rule(max_position_value=3000).can_trade(
            make_rule_input(positions=balanced_positions, balance=10_000),
        )
        assert verdict.allowed is True
        assert verdict.reason.startswith("risk_high")

    def test_critical_blocks(self, make_rule_input):
        rule = _rule(max_daily_loss=100)
        rule.record_trade_result(-500, NOW - timedelta(hours=2))
        verdict = rule.can_trade(make_rule_input())
        assert verdict.allowed is False
        assert "max_daily_loss" in verdict.reason

    def test_cooldown_after_loss(self, make_rule_input):
        rule = _rule(cooldown_after_loss_minutes=5)
        rule.record_trade_result(-10, NOW)
        assert rule.can_trade(make_rule_input(ts=NOW + timedelta(minutes=1))) == RiskVerdict(
            allowed=False, reason="cooldown_active",
        )
        assert rule.can_trade(make_rule_input(ts=NOW + timedelta(minutes=6))).allowed is True

    def test_profit_does_not_start_cooldown(self, make_rule_input):
        rule = _rule()
        rule.record_trade_result(25, NOW)
        assert rule.in_cooldown(NOW) is False
        assert rule.can_trade(make_rule_input()).allowed is True


class TestGenerateSignal:
    def test_no_signal_when_healthy(self, make_rule_input, balanced_positions):
        assert _rule().generate_signal(make_rule_input(positions=balanced_positions, balance=10_000)) is None

    def test_liquidates_every_position_on_critical(self, make_rule_input, balanced_positions):
        rule = _rule()
        rule.set_initial_equity(20_000)
        data = make_rule_input(
            prices={"BTC": 900.0, "ETH": 900.0}, positions=balanced_positions, balance=10_000,
        )
        signals = rule.generate_signal(data)
        assert sorted(s.symbol for s in signals) == ["BTC", "ETH", "SOL", "XRP"]
        for signal in signals:
            assert signal.signal_type == "sell"
            assert signal.suggested_amount == 1.0
            assert signal.confidence == 1.0
            assert signal.rule_score == -1.0
            assert signal.strength == "strong"
            assert signal.rule_type == "risk_control"
        btc = next(s for s in signals if s.symbol == "BTC")
        assert btc.suggested_price == 900.0

    def test_no_liquidation_without_emergency_stop(self, make_rule_input):
        rule = _rule(enable_emergency_stop=False)
        positions = {"BTC": (3.0, 1000.0), "ETH": (1.0, 1000.0)}
        assert rule.assess_risk(make_rule_input(positions=positions)).level == "critical"
        assert rule.generate_signal(make_rule_input(positions=positions)) is None

    def test_high_level_does_not_liquidate(self, make_rule_input, balanced_positions):
        rule = _rule(max_position_value=3000)
        assert rule.generate_signal(make_rule_input(positions=balanced_positions, balance=10_000)) is None

    def test_disabled_rule_is_silent(self, make_rule_input, balanced_positions):
        rule = RiskControlRule(RuleConfig(enabled=False))
        rule.set_initial_equity(20_000)
        assert rule.generate_signal(make_rule_input(positions=balanced_positions, balance=10_000)) is None


class TestStatus:
    def test_status_fields(self):
        rule = _rule(max_daily_loss=1000)
        rule.set_initial_equity(5000)
        rule.record_trade_result(-200, NOW)
        status = rule.status()
        assert status["initial_equity"] == 5000
        assert status["daily_loss"] == 200
        assert status["remaining_daily_loss"] == pytest.approx(800)
        assert status["day"] == "2025-06-15"
        assert status["last_loss_ts"] == NOW
