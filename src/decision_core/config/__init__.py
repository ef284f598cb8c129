"""Configuration system."""

from decision_core.config.loader import load_config
from decision_core.config.schema import (
    AppConfig,
    ArbitrationConfig,
    BracketConfig,
    DetectorConfig,
    FilterConfig,
    RuleConfig,
    ValidatorConfig,
)

__all__ = [
    "AppConfig",
    "ArbitrationConfig",
    "BracketConfig",
    "DetectorConfig",
    "FilterConfig",
    "RuleConfig",
    "ValidatorConfig",
    "load_config",
]
