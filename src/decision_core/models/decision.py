"""Decision models — candidates, vetted decisions and rejection records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RejectionCode(str, Enum):
    """Machine-readable reason codes for the rejection audit trail."""

    INPUT_INVALID = "input_invalid"
    INSUFFICIENT_DATA = "insufficient_data"
    SYMBOL_CYCLE_FAILED = "symbol_cycle_failed"
    PRODUCER_FAILED = "producer_failed"
    RISK_TRIGGERED = "risk_triggered"
    RISK_ASSESSMENT_FAILED = "risk_assessment_failed"
    TRADING_BLOCKED = "trading_blocked"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_POSITION = "insufficient_position"
    LOW_CONFIDENCE = "low_confidence"
    NO_ACTION = "no_action"
    MISSING_BRACKET = "missing_bracket"
    MISSING_PRICE = "missing_price"
    MISSING_AMOUNT = "missing_amount"
    WRONG_SIDE_BRACKET = "wrong_side_bracket"
    BRACKET_TOO_NARROW = "bracket_too_narrow"
    BRACKET_TOO_WIDE = "bracket_too_wide"
    EXTREME_VOLATILITY = "extreme_volatility"
    UNKNOWN_VOLATILITY = "unknown_volatility"


class Rejection(BaseModel):
    """One audited rejection. ``symbol`` is None for portfolio-wide outcomes."""

    model_config = ConfigDict(frozen=True)

    code: RejectionCode
    symbol: str | None = None
    source: str
    detail: str = ""
    timestamp: datetime


class DecisionCandidate(BaseModel):
    """A proposed trade that has not yet passed the validator."""

    symbol: str
    action: Literal["buy", "sell", "hold"]
    confidence: float = Field(ge=0.0, le=1.0)
    combined_score: float = 0.0
    reason: str = ""
    suggested_price: float | None = None
    suggested_amount: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    timestamp: datetime
    source: Literal["signal", "rule"] = "signal"
    source_signals: list[str] = Field(default_factory=list)


class Decision(BaseModel):
    """A fully vetted bracket decision ready for an executor."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    action: Literal["buy", "sell"]
    confidence: float = Field(ge=0.0, le=1.0)
    combined_score: float
    reason: str
    suggested_price: float = Field(gt=0.0)
    suggested_amount: float = Field(gt=0.0)
    stop_loss: float = Field(gt=0.0)
    take_profit: float = Field(gt=0.0)
    timestamp: datetime
    source_signals: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Validator verdict for a single candidate."""

    valid: bool
    code: RejectionCode | None = None
    reason: str | None = None
