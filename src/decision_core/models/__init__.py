"""Pydantic domain models."""

from decision_core.models.decision import (
    Decision,
    DecisionCandidate,
    Rejection,
    RejectionCode,
    ValidationResult,
)
from decision_core.models.market import (
    SUPPORTED_TIMEFRAMES,
    Candle,
    IndicatorSnapshot,
    MarketState,
)
from decision_core.models.rules import (
    PositionInfo,
    PriceData,
    RiskAssessment,
    RuleInput,
    RuleSignal,
)
from decision_core.models.signal import Signal, SignalType

__all__ = [
    "SUPPORTED_TIMEFRAMES",
    "Candle",
    "Decision",
    "DecisionCandidate",
    "IndicatorSnapshot",
    "MarketState",
    "PositionInfo",
    "PriceData",
    "Rejection",
    "RejectionCode",
    "RiskAssessment",
    "RuleInput",
    "RuleSignal",
    "Signal",
    "SignalType",
    "ValidationResult",
]
