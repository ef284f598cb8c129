"""Configuration schema — Pydantic models for config.yaml."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class StrengthWeights(BaseModel):
    """Tuned strength heuristics for the event detector.

    These are carried over as defaults without a documented derivation;
    override them in config rather than editing code.
    """

    ma_short_scale: float = 100.0
    ma_short_weight: float = 1.2
    ma_long_scale: float = 80.0
    ma_long_weight: float = 1.3
    macd_diff_scale: float = 50.0
    macd_histogram_scale: float = 10.0
    macd_weight: float = 1.1
    rsi_depth_scale: float = 20.0
    rsi_neutral_scale: float = 10.0
    bb_touch_scale: float = 100.0
    bb_touch_base: float = 0.5
    bb_breakout_scale: float = 50.0
    bb_breakout_base: float = 0.6
    volume_spike_range: float = 3.0


class DetectorConfig(BaseModel):
    enable_adx_filter: bool = True
    min_adx: float = Field(default=25.0, ge=0.0, le=100.0)
    missing_adx_policy: Literal["suppress", "allow"] = "suppress"
    price_confirmation: int = Field(default=2, ge=1, le=5)
    touch_tolerance: float = 0.005
    confirmation_tolerance: float = 0.01
    breakout_volume_multiplier: float = 1.2
    volume_spike_multiplier: float = 2.0
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    rsi_trend_oversold: float = 25.0
    rsi_trend_overbought: float = 75.0
    weights: StrengthWeights = Field(default_factory=StrengthWeights)


class FilterConfig(BaseModel):
    min_strength: float = Field(default=0.5, ge=0.0, le=1.0)
    max_signals: int = Field(default=10, ge=1, le=50)


class ArbitrationConfig(BaseModel):
    strength_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"weak": 0.8, "moderate": 1.0, "strong": 1.2},
    )
    rule_type_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "dca": 0.9,
            "grid": 1.0,
            "risk_control": 2.0,
            "stop_loss": 1.8,
            "take_profit": 1.5,
            "trend_follow": 1.0,
        },
    )
    default_rule_type_multiplier: float = 1.0


class ValidatorConfig(BaseModel):
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_bracket_pct: float = 0.0005
    max_bracket_pct: float = 0.005
    reject_unknown_volatility: bool = False


class BracketConfig(BaseModel):
    """Stop-loss / take-profit placement and sizing for generated candidates."""

    stop_loss_pct: float = 0.0015
    take_profit_pct: float = 0.0020
    base_fraction: float = 0.05
    strength_fraction: float = 0.10


class RuleConfig(BaseModel):
    enabled: bool = True
    priority: int = 100
    max_trade_amount: float | None = None
    min_trade_amount: float | None = None
    params: dict[str, float | int | str | bool | list[str]] = Field(default_factory=dict)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"


class AppConfig(BaseModel):
    symbols: list[str] = Field(default_factory=lambda: ["BTC", "ETH", "SOL"])
    timeframe: str = "15m"
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    arbitration: ArbitrationConfig = Field(default_factory=ArbitrationConfig)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    bracket: BracketConfig = Field(default_factory=BracketConfig)
    rules: dict[str, RuleConfig] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
