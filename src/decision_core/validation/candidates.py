"""Turn detector signals and rule recommendations into bracketed candidates."""

from __future__ import annotations

from typing import Literal

from decision_core.config.schema import BracketConfig
from decision_core.models import DecisionCandidate, RuleSignal, Signal


def bracket_prices(
    action: Literal["buy", "sell"],
    price: float,
    bracket: BracketConfig,
) -> tuple[float, float]:
    """Return (stop_loss, take_profit) on the protective side of *price*."""
    if action == "buy":
        return price * (1 - bracket.stop_loss_pct), price * (1 + bracket.take_profit_pct)
    return price * (1 + bracket.stop_loss_pct), price * (1 - bracket.take_profit_pct)


def candidate_from_signal(
    signal: Signal,
    price: float,
    available_balance: float,
    bracket: BracketConfig | None = None,
    held: float = 0.0,
) -> DecisionCandidate | None:
    """Bullish signals become buys, bearish ones sells; neutral signals yield None.

    The amount is a fraction that grows with signal strength: of the
    available balance (quote currency) for a buy, of the *held* position
    (base units) for a sell. Confidence and combined score are the signal
    strength.
    """
    bracket = bracket or BracketConfig()
    if signal.direction == "bullish":
        action: Literal["buy", "sell"] = "buy"
    elif signal.direction == "bearish":
        action = "sell"
    else:
        return None

    stop_loss, take_profit = bracket_prices(action, price, bracket)
    fraction = bracket.base_fraction + signal.strength * bracket.strength_fraction
    return DecisionCandidate(
        symbol=signal.symbol,
        action=action,
        confidence=signal.strength,
        combined_score=signal.strength,
        reason=f"{signal.type.value} strength={signal.strength:.2f}",
        suggested_price=price,
        suggested_amount=(available_balance if action == "buy" else held) * fraction,
        stop_loss=stop_loss,
        take_profit=take_profit,
        timestamp=signal.timestamp,
        source="signal",
        source_signals=[signal.id],
    )


def candidate_from_rule_signal(
    rule_signal: RuleSignal,
    price: float,
    bracket: BracketConfig | None = None,
    score: float | None = None,
) -> DecisionCandidate | None:
    """Wrap an arbitrated rule recommendation; hold yields None.

    The suggested price falls back to the market *price* and the bracket is
    placed around whichever price is used.
    """
    bracket = bracket or BracketConfig()
    if rule_signal.signal_type == "hold":
        return None
    action: Literal["buy", "sell"] = rule_signal.signal_type
    entry = rule_signal.suggested_price or price
    stop_loss, take_profit = bracket_prices(action, entry, bracket)
    return DecisionCandidate(
        symbol=rule_signal.symbol,
        action=action,
        confidence=rule_signal.confidence,
        combined_score=score if score is not None else rule_signal.confidence * abs(rule_signal.rule_score),
        reason=f"{rule_signal.rule_type}: {rule_signal.reason}",
        suggested_price=entry,
        suggested_amount=rule_signal.suggested_amount,
        stop_loss=stop_loss,
        take_profit=take_profit,
        timestamp=rule_signal.timestamp,
        source="rule",
        source_signals=[rule_signal.rule_type],
    )
