"""Config loader — reads YAML, applies DECISION_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from decision_core.config.schema import AppConfig


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.

    Environment variable overrides:
        DECISION_LOG_LEVEL       -> logging.level
        DECISION_LOG_FORMAT      -> logging.format
        DECISION_MIN_CONFIDENCE  -> validator.min_confidence
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    log_level = os.environ.get("DECISION_LOG_LEVEL")
    if log_level:
        data.setdefault("logging", {})["level"] = log_level

    log_format = os.environ.get("DECISION_LOG_FORMAT")
    if log_format:
        data.setdefault("logging", {})["format"] = log_format

    min_confidence = os.environ.get("DECISION_MIN_CONFIDENCE")
    if min_confidence:
        data.setdefault("validator", {})["min_confidence"] = float(min_confidence)

    return AppConfig.model_validate(data)
