"""Risk-control producer — portfolio circuit breaker evaluated before all other rules."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

import structlog

from decision_core.config.schema import RuleConfig
from decision_core.models import RiskAssessment, RuleInput, RuleSignal
from decision_core.models.rules import RiskLevel
from decision_core.rules.base import RuleProducer
from decision_core.rules.registry import register

log = structlog.get_logger("risk_control")

EMERGENCY_STOP = "emergency_stop"

_DEFAULTS: dict[str, Any] = {
    "max_position_value": 50_000.0,
    "max_symbol_position_pct": 30.0,
    "max_drawdown_pct": 10.0,
    "max_daily_loss": 1_000.0,
    "enable_emergency_stop": True,
    "emergency_stop_pct": 15.0,
    "cooldown_after_loss_minutes": 5,
}

_LEVEL_ORDER: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


@dataclass
class RiskVerdict:
    """Result of a risk check — allowed or rejected with a reason."""

    allowed: bool
    reason: str = ""


def _raise_level(current: RiskLevel, to: RiskLevel) -> RiskLevel:
    return to if _LEVEL_ORDER[to] > _LEVEL_ORDER[current] else current


@register
class RiskControlRule(RuleProducer):
    """Watches exposure, drawdown and daily loss; liquidates on a critical breach.

    Params (percentages are whole numbers, e.g. ``10`` for 10 %):
      max_position_value, max_symbol_position_pct, max_drawdown_pct,
      max_daily_loss, enable_emergency_stop, emergency_stop_pct,
      cooldown_after_loss_minutes.

    Daily loss resets when the UTC date of the cycle timestamp changes.
    State is in-memory and resets on process restart.
    """

    rule_type = "risk_control"

    def __init__(self, config: RuleConfig | None = None) -> None:
        super().__init__(config or RuleConfig(priority=0))
        self.params = {**_DEFAULTS, **self.params}
        self._lock = threading.Lock()
        self._daily_loss = 0.0
        self._day: date | None = None
        self._initial_equity = 0.0
        self._peak_equity = 0.0
        self._last_loss_ts: datetime | None = None

    # ── State ─────────────────────────────────────────────────

    def _roll_day(self, now: datetime) -> None:
        """Reset the daily loss on a new UTC day. Caller holds the lock."""
        today = _utc_date(now)
        if self._day != today:
            if self._day is not None:
                log.info("risk_daily_reset", previous_daily_loss=self._daily_loss, day=today.isoformat())
            self._daily_loss = 0.0
            self._day = today

    def set_initial_equity(self, value: float) -> None:
        with self._lock:
            self._initial_equity = value
            self._peak_equity = value
        log.info("risk_initial_equity_set", equity=value)

    def record_trade_result(self, pnl: float, ts: datetime) -> None:
        """Accumulate realized losses for the day and start the loss cooldown."""
        with self._lock:
            self._roll_day(ts)
            if pnl < 0:
                self._daily_loss += abs(pnl)
                self._last_loss_ts = ts
            daily_loss = self._daily_loss
        log.debug(
            "risk_trade_recorded",
            pnl=pnl,
            daily_loss=daily_loss,
            max_daily_loss=self.params["max_daily_loss"],
        )

    def in_cooldown(self, now: datetime) -> bool:
        with self._lock:
            last = self._last_loss_ts
        if last is None:
            return False
        elapsed = (now - last).total_seconds()
        return elapsed < float(self.params["cooldown_after_loss_minutes"]) * 60

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "daily_loss": self._daily_loss,
                "day": self._day.isoformat() if self._day else None,
                "initial_equity": self._initial_equity,
                "peak_equity": self._peak_equity,
                "remaining_daily_loss": max(0.0, float(self.params["max_daily_loss"]) - self._daily_loss),
                "last_loss_ts": self._last_loss_ts,
            }

    # ── Assessment ────────────────────────────────────────────

    def assess_risk(self, input: RuleInput) -> RiskAssessment:
        """Evaluate portfolio limits against the cycle input.

        Position value is ``amount * avg_cost``; equity is position value plus
        available balance, and the running peak equity is updated here.
        """
        p = self.params
        total_position_value = sum(pos.amount * pos.avg_cost for pos in input.positions)
        equity = total_position_value + input.available_balance

        with self._lock:
            self._roll_day(input.timestamp)
            if equity > self._peak_equity:
                self._peak_equity = equity
            peak = self._peak_equity
            daily_loss = self._daily_loss

        triggered: list[str] = []
        recommendations: list[str] = []
        level: RiskLevel = "low"

        max_value = float(p["max_position_value"])
        if total_position_value > max_value:
            triggered.append("max_position_value")
            recommendations.append(
                f"position value {total_position_value:.2f} exceeds limit {max_value:.2f}"
            )
            level = _raise_level(level, "high")

        if total_position_value > 0:
            max_ratio = float(p["max_symbol_position_pct"]) / 100
            for pos in input.positions:
                ratio = pos.amount * pos.avg_cost / total_position_value
                if ratio > max_ratio:
                    triggered.append(f"symbol_position_ratio:{pos.symbol}")
                    recommendations.append(
                        f"{pos.symbol} holds {ratio:.1%} of positions, limit {max_ratio:.0%}"
                    )
                    level = "critical"

        if peak > 0:
            drawdown = (peak - equity) / peak
            max_drawdown = float(p["max_drawdown_pct"]) / 100
            if drawdown > max_drawdown:
                triggered.append("max_drawdown")
                recommendations.append(f"drawdown {drawdown:.1%} exceeds limit {max_drawdown:.0%}")
                level = "critical"
                if p["enable_emergency_stop"] and drawdown > float(p["emergency_stop_pct"]) / 100:
                    triggered.append(EMERGENCY_STOP)
                    recommendations.append("emergency stop: close all positions")
            elif drawdown > max_drawdown * 0.5:
                level = _raise_level(level, "medium")

        max_daily_loss = float(p["max_daily_loss"])
        if daily_loss > max_daily_loss:
            triggered.append("max_daily_loss")
            recommendations.append(f"daily loss {daily_loss:.2f} exceeds limit {max_daily_loss:.2f}")
            level = "critical"
        elif daily_loss > max_daily_loss * 0.7:
            recommendations.append(f"daily loss {daily_loss:.2f} approaching limit {max_daily_loss:.2f}")
            level = _raise_level(level, "medium")

        return RiskAssessment(
            level=level,
            triggered=bool(triggered),
            triggered_rules=triggered,
            recommendations=recommendations,
            total_position_value=total_position_value,
            available_balance=input.available_balance,
        )

    def can_trade(self, input: RuleInput) -> RiskVerdict:
        assessment = self.assess_risk(input)
        if assessment.level == "critical":
            return RiskVerdict(
                allowed=False,
                reason=f"risk_critical ({', '.join(assessment.triggered_rules)})",
            )
        if self.in_cooldown(input.timestamp):
            return RiskVerdict(allowed=False, reason="cooldown_active")
        if assessment.level == "high":
            return RiskVerdict(allowed=True, reason="risk_high: trade with caution")
        return RiskVerdict(allowed=True)

    # ── Signals ───────────────────────────────────────────────

    def generate_signal(self, input: RuleInput) -> list[RuleSignal] | None:
        """Sell every open position in full on a critical breach with emergency stop armed."""
        if not self.enabled:
            return None
        assessment = self.assess_risk(input)
        if not assessment.triggered or assessment.level != "critical":
            return None
        if not (self.params["enable_emergency_stop"] or EMERGENCY_STOP in assessment.triggered_rules):
            return None

        reason = f"risk liquidation: {', '.join(assessment.triggered_rules)}"
        signals: list[RuleSignal] = []
        for pos in input.positions:
            if pos.amount <= 0:
                continue
            price = self.price_data(pos.symbol, input)
            signal = self.make_signal(
                input,
                signal_type="sell",
                symbol=pos.symbol,
                reason=reason,
                confidence=1.0,
                rule_score=-1.0,
                strength="strong",
                suggested_price=price.price if price else None,
                suggested_amount=pos.amount,
            )
            if self.accept_signal(signal):
                signals.append(signal)

        if signals:
            log.warning(
                "risk_liquidation",
                level=assessment.level,
                triggered_rules=assessment.triggered_rules,
                signals=len(signals),
            )
        return signals or None


def _utc_date(ts: datetime) -> date:
    """UTC calendar date of *ts*; naive timestamps are taken as UTC."""
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(timezone.utc).date()
