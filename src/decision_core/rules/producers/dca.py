"""Dollar-cost averaging producer — periodic buys, sized up below average cost."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from decision_core.config.schema import RuleConfig
from decision_core.models import PriceData, RuleInput, RuleSignal
from decision_core.rules.base import RuleProducer
from decision_core.rules.registry import register

log = structlog.get_logger("rules.dca")


@dataclass
class DCAState:
    """Accumulated DCA position for one symbol."""

    symbol: str
    avg_cost: float = 0.0
    total_invested: float = 0.0
    total_amount: float = 0.0
    last_invest_ts: datetime | None = None
    investment_count: int = 0


def _volatility(price: PriceData) -> float:
    """24h range relative to the high; 0 when the range is unknown."""
    if price.high_24h <= 0 or price.low_24h <= 0:
        return 0.0
    return (price.high_24h - price.low_24h) / price.high_24h


@register
class DCARule(RuleProducer):
    """Buy a fixed quote amount per interval, more when price sits below average cost.

    Params: symbols, investment_amount (quote currency), interval_hours,
    price_deviation_pct (whole percent), max_multiplier.
    """

    rule_type = "dca"

    def __init__(self, config: RuleConfig | None = None) -> None:
        super().__init__(config)
        self.symbols = list(self.params.get("symbols", ["BTC"]))
        self.investment_amount = float(self.params.get("investment_amount", 100.0))
        self.interval = timedelta(hours=float(self.params.get("interval_hours", 24)))
        self.deviation_threshold = float(self.params.get("price_deviation_pct", 5.0)) / 100
        self.max_multiplier = float(self.params.get("max_multiplier", 3.0))
        self._lock = threading.Lock()
        self._states = {symbol: DCAState(symbol=symbol) for symbol in self.symbols}

    def state(self, symbol: str) -> DCAState | None:
        with self._lock:
            return self._states.get(symbol)

    def record_fill(self, symbol: str, invested: float, received: float, ts: datetime) -> None:
        """Fold an executed buy into the average cost for *symbol*."""
        with self._lock:
            state = self._states.setdefault(symbol, DCAState(symbol=symbol))
            state.total_invested += invested
            state.total_amount += received
            state.avg_cost = state.total_invested / state.total_amount if state.total_amount > 0 else 0.0
            state.last_invest_ts = ts
            state.investment_count += 1
        log.info(
            "dca_fill_recorded",
            symbol=symbol,
            avg_cost=state.avg_cost,
            total_invested=state.total_invested,
            investment_count=state.investment_count,
        )

    def _deviation(self, price: PriceData, state: DCAState) -> float | None:
        if state.total_amount <= 0 or state.avg_cost <= 0:
            return None
        return (state.avg_cost - price.price) / state.avg_cost

    def invest_amount(self, price: PriceData, state: DCAState) -> float:
        amount = self.investment_amount
        deviation = self._deviation(price, state)
        if deviation is not None and deviation > self.deviation_threshold:
            multiplier = min(1 + deviation / self.deviation_threshold, self.max_multiplier)
            amount = self.investment_amount * multiplier
        if not self.is_valid_trade_amount(amount):
            return 0.0
        return amount

    def metrics(self, price: PriceData, state: DCAState) -> tuple[float, float, str]:
        """Return (confidence, rule_score, reason) for a DCA buy."""
        confidence, score = 0.5, 0.3
        reasons: list[str] = []

        deviation = self._deviation(price, state)
        if deviation is None:
            reasons.append("first purchase")
        elif deviation > self.deviation_threshold:
            bonus = min(deviation * 2, 0.3)
            confidence += bonus
            score += bonus
            reasons.append(f"price {deviation:.1%} below average cost")
        elif deviation < -self.deviation_threshold:
            confidence -= 0.1
            score -= 0.1
            reasons.append(f"price {-deviation:.1%} above average cost")
        else:
            reasons.append("price near average cost")

        if price.change_24h < -5:
            confidence += 0.1
            reasons.append(f"24h change {price.change_24h:.1f}%")
        elif price.change_24h > 5:
            confidence -= 0.1
            reasons.append(f"24h change +{price.change_24h:.1f}%")

        volatility = _volatility(price)
        if volatility < 0.05:
            confidence += 0.05
        elif volatility > 0.15:
            confidence -= 0.1
            reasons.append("high volatility")

        confidence = max(0.2, min(0.8, confidence))
        score = max(0.1, min(0.8, score))
        return confidence, score, "dca: " + ", ".join(reasons)

    def generate_signal(self, input: RuleInput) -> list[RuleSignal] | None:
        if not self.enabled:
            return None

        signals: list[RuleSignal] = []
        for symbol in self.symbols:
            price = self.price_data(symbol, input)
            if price is None:
                log.debug("dca_price_missing", symbol=symbol)
                continue
            state = self.state(symbol)
            if state is None:
                continue
            if state.last_invest_ts is not None and input.timestamp - state.last_invest_ts < self.interval:
                continue

            amount = self.invest_amount(price, state)
            if amount <= 0:
                continue
            confidence, score, reason = self.metrics(price, state)
            signal = self.make_signal(
                input,
                signal_type="buy",
                symbol=symbol,
                reason=reason,
                confidence=confidence,
                rule_score=score,
                strength=self.classify_strength(confidence, volatility=_volatility(price)),
                suggested_price=price.price,
                suggested_amount=amount,
            )
            if self.accept_signal(signal):
                signals.append(signal)

        return signals or None
