"""Rule-engine models — producer input, rule signals, risk assessment."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from decision_core.models.market import IndicatorSnapshot

RuleSignalType = Literal["buy", "sell", "hold"]
SignalStrength = Literal["weak", "moderate", "strong"]
RiskLevel = Literal["low", "medium", "high", "critical"]


class PriceData(BaseModel):
    """Latest ticker values for one symbol."""

    symbol: str
    price: float = Field(gt=0.0)
    change_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    volume_24h: float = 0.0
    timestamp: datetime


class PositionInfo(BaseModel):
    """An open position as reported by the account provider."""

    symbol: str
    amount: float = Field(ge=0.0)
    avg_cost: float = Field(ge=0.0)
    unrealized_pnl: float = 0.0


class RuleInput(BaseModel):
    """Everything a rule producer may look at during one cycle."""

    prices: list[PriceData] = Field(default_factory=list)
    positions: list[PositionInfo] = Field(default_factory=list)
    available_balance: float = Field(ge=0.0)
    timestamp: datetime
    indicators: dict[str, IndicatorSnapshot] = Field(default_factory=dict)

    def price_for(self, symbol: str) -> PriceData | None:
        return next((p for p in self.prices if p.symbol == symbol), None)

    def position_for(self, symbol: str) -> PositionInfo | None:
        return next((p for p in self.positions if p.symbol == symbol), None)


class RuleSignal(BaseModel):
    """An opinion emitted by a rule producer."""

    model_config = ConfigDict(frozen=True)

    rule_type: str
    signal_type: RuleSignalType
    strength: SignalStrength
    symbol: str
    reason: str
    suggested_price: float | None = None
    suggested_amount: float | None = None
    rule_score: float = Field(ge=-1.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime


class RiskAssessment(BaseModel):
    """Outcome of the risk-control producer's portfolio check for one cycle."""

    level: RiskLevel = "low"
    triggered: bool = False
    triggered_rules: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    total_position_value: float = 0.0
    available_balance: float = 0.0
