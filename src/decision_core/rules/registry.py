"""Rule registry — decorated producer classes are auto-registered by rule type."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from decision_core.config.schema import RuleConfig
    from decision_core.rules.base import RuleProducer

RULE_REGISTRY: dict[str, type[RuleProducer]] = {}


def register(cls: type[RuleProducer]) -> type[RuleProducer]:
    """Class decorator that adds a rule producer to the global registry."""
    if not getattr(cls, "rule_type", None):
        raise ValueError(f"Rule class {cls.__name__} must define a 'rule_type' attribute")
    if cls.rule_type in RULE_REGISTRY:
        raise ValueError(f"Duplicate rule type: {cls.rule_type!r}")
    RULE_REGISTRY[cls.rule_type] = cls
    return cls


def build_producers(rules: dict[str, RuleConfig]) -> list[RuleProducer]:
    """Instantiate configured producers, sorted by priority.

    Disabled producers are still built so the arbitrator can see the
    risk-control rule; it skips disabled ones itself. Unknown rule types
    raise ValueError.
    """
    producers: list[RuleProducer] = []
    for rule_type, rule_config in rules.items():
        cls = RULE_REGISTRY.get(rule_type)
        if cls is None:
            raise ValueError(f"Unknown rule type: {rule_type!r}")
        producers.append(cls(rule_config))
    return sorted(producers, key=lambda p: p.priority)
