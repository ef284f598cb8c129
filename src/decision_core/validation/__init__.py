"""Candidate construction and the decision validator."""

from decision_core.validation.candidates import (
    bracket_prices,
    candidate_from_rule_signal,
    candidate_from_signal,
)
from decision_core.validation.validator import DecisionValidator

__all__ = [
    "DecisionValidator",
    "bracket_prices",
    "candidate_from_rule_signal",
    "candidate_from_signal",
]
