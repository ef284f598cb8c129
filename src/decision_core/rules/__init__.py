"""Rule producers, the risk gate and the arbitrator."""

from decision_core.rules.base import RuleProducer
from decision_core.rules.registry import RULE_REGISTRY, build_producers, register
from decision_core.rules.risk import RiskControlRule, RiskVerdict
from decision_core.rules.arbitrator import ArbitrationResult, RuleArbitrator, feasibility_failure

import decision_core.rules.producers  # noqa: E402, F401

__all__ = [
    "RULE_REGISTRY",
    "ArbitrationResult",
    "RiskControlRule",
    "RiskVerdict",
    "RuleArbitrator",
    "RuleProducer",
    "build_producers",
    "feasibility_failure",
    "register",
]
