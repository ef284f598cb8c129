"""Rule producer abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from decision_core.config.schema import RuleConfig
from decision_core.models import PriceData, RuleInput, RuleSignal
from decision_core.models.rules import RuleSignalType, SignalStrength

log = structlog.get_logger("rules")


class RuleProducer(ABC):
    """Base class for all rule producers.

    Subclasses set ``rule_type`` and implement generate_signal(). Producers may
    keep private state (average costs, pending grid orders) but must never
    reach into another producer or perform I/O: everything they need arrives
    in the RuleInput.
    """

    rule_type: str

    def __init__(self, config: RuleConfig | None = None) -> None:
        self.config = config or RuleConfig()
        self.params = dict(self.config.params)

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @abstractmethod
    def generate_signal(self, input: RuleInput) -> list[RuleSignal] | None:
        """Return zero or more opinions for this cycle, or None to pass."""
        ...

    def update_config(self, **changes) -> None:
        self.config = self.config.model_copy(update=changes)
        log.info(
            "rule_config_updated",
            rule_type=self.rule_type,
            enabled=self.config.enabled,
            priority=self.config.priority,
        )

    # ── Helpers for subclasses ────────────────────────────────

    def price_data(self, symbol: str, input: RuleInput) -> PriceData | None:
        return input.price_for(symbol)

    def is_valid_trade_amount(self, amount: float) -> bool:
        if self.config.min_trade_amount is not None and amount < self.config.min_trade_amount:
            return False
        if self.config.max_trade_amount is not None and amount > self.config.max_trade_amount:
            return False
        return True

    def make_signal(
        self,
        input: RuleInput,
        *,
        signal_type: RuleSignalType,
        symbol: str,
        reason: str,
        confidence: float,
        rule_score: float,
        strength: SignalStrength = "weak",
        suggested_price: float | None = None,
        suggested_amount: float | None = None,
    ) -> RuleSignal:
        """Build a RuleSignal stamped with the cycle timestamp; confidence is clamped."""
        return RuleSignal(
            rule_type=self.rule_type,
            signal_type=signal_type,
            strength=strength,
            symbol=symbol,
            reason=reason,
            suggested_price=suggested_price,
            suggested_amount=suggested_amount,
            rule_score=max(-1.0, min(1.0, rule_score)),
            confidence=max(0.0, min(1.0, confidence)),
            timestamp=input.timestamp,
        )

    @staticmethod
    def classify_strength(
        confidence: float,
        *,
        factor: float | None = None,
        volatility: float | None = None,
    ) -> SignalStrength:
        """Map a confidence (optionally blended with another factor) to a category."""
        value = confidence
        if factor is not None:
            value = (value + factor) / 2
        if volatility is not None and volatility > 0.1:
            value *= 0.8
        if value < 0.4:
            return "weak"
        if value < 0.7:
            return "moderate"
        return "strong"

    def accept_signal(self, signal: RuleSignal) -> bool:
        """Sanity-check a signal before emitting it; logs why it was dropped."""
        if not signal.symbol:
            log.warning("rule_signal_invalid", rule_type=self.rule_type, reason="missing symbol")
            return False
        if signal.suggested_amount is not None and not self.is_valid_trade_amount(signal.suggested_amount):
            log.warning(
                "rule_signal_invalid",
                rule_type=self.rule_type,
                symbol=signal.symbol,
                reason="suggested amount outside trade limits",
                amount=signal.suggested_amount,
            )
            return False
        log.debug(
            "rule_signal_generated",
            rule_type=self.rule_type,
            symbol=signal.symbol,
            signal_type=signal.signal_type,
            strength=signal.strength,
            confidence=signal.confidence,
            rule_score=signal.rule_score,
        )
        return True
