"""Rule arbitrator — risk gate, producer fan-out, per-symbol conflict resolution."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

import structlog

from decision_core.config.schema import ArbitrationConfig
from decision_core.errors import InvariantViolation
from decision_core.logging.audit import AuditTrail
from decision_core.models import Rejection, RejectionCode, RiskAssessment, RuleInput, RuleSignal
from decision_core.rules.base import RuleProducer
from decision_core.rules.risk import RiskControlRule

log = structlog.get_logger("arbitrator")

SOURCE = "rule_arbitrator"

_BLOCKING_CODES = {RejectionCode.TRADING_BLOCKED, RejectionCode.RISK_ASSESSMENT_FAILED}


def feasibility_failure(
    action: Literal["buy", "sell"],
    symbol: str,
    amount: float,
    input: RuleInput,
) -> tuple[RejectionCode, str] | None:
    """Return the rejection code and detail for a trade the account cannot make, else None.

    Buy amounts are quote currency checked against the available balance;
    sell amounts are base units checked against the held position.
    """
    if action == "buy":
        if amount > input.available_balance:
            return RejectionCode.INSUFFICIENT_BALANCE, f"requires {amount}, available {input.available_balance}"
        return None
    position = input.position_for(symbol)
    held = position.amount if position else 0.0
    if held <= 0 or held < amount:
        return RejectionCode.INSUFFICIENT_POSITION, f"requires {amount}, held {held}"
    return None


def _check_one_per_symbol(signals: Sequence[RuleSignal]) -> None:
    symbols = [s.symbol for s in signals]
    if len(symbols) != len(set(symbols)):
        raise InvariantViolation(f"more than one surviving signal per symbol: {sorted(symbols)}")


@dataclass
class ArbitrationResult:
    """Outcome of one arbitration cycle.

    ``signals`` are the per-symbol winners before the feasibility check;
    ``recommendations`` are the winners that passed it.
    """

    signals: list[RuleSignal] = field(default_factory=list)
    risk_assessment: RiskAssessment | None = None
    recommendations: list[RuleSignal] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)

    @property
    def risk_triggered(self) -> bool:
        return self.risk_assessment is not None and self.risk_assessment.triggered

    @property
    def blocked(self) -> bool:
        """True when the risk gate refused trading for the whole cycle."""
        return any(r.code in _BLOCKING_CODES for r in self.rejections)


class RuleArbitrator:
    def __init__(self, config: ArbitrationConfig | None = None, audit: AuditTrail | None = None) -> None:
        self.config = config or ArbitrationConfig()
        self.audit = audit if audit is not None else AuditTrail()

    def score(self, signal: RuleSignal) -> float:
        """confidence * |rule_score| * strength multiplier * rule-type multiplier."""
        base = signal.confidence * abs(signal.rule_score)
        strength = self.config.strength_multipliers.get(signal.strength, 1.0)
        rule_type = self.config.rule_type_multipliers.get(
            signal.rule_type, self.config.default_rule_type_multiplier,
        )
        return base * strength * rule_type

    def _reject(self, result: ArbitrationResult, code: RejectionCode, input: RuleInput, *,
                symbol: str | None = None, detail: str = "") -> None:
        result.rejections.append(
            self.audit.record(code, source=SOURCE, symbol=symbol, detail=detail, ts=input.timestamp)
        )

    def arbitrate(self, producers: Sequence[RuleProducer], input: RuleInput) -> ArbitrationResult:
        risk_rules = [p for p in producers if isinstance(p, RiskControlRule)]
        if len(risk_rules) != 1:
            raise ValueError(
                f"Exactly one risk-control producer is required, got {len(risk_rules)}"
            )
        risk = risk_rules[0]
        result = ArbitrationResult()

        if risk.enabled:
            try:
                assessment = risk.assess_risk(input)
                result.risk_assessment = assessment
                if assessment.triggered:
                    return self._short_circuit(risk, assessment, input, result)
                verdict = risk.can_trade(input)
            except InvariantViolation:
                raise
            except Exception as exc:
                log.exception("risk_assessment_failed", rule_type=risk.rule_type)
                self._reject(result, RejectionCode.RISK_ASSESSMENT_FAILED, input, detail=repr(exc))
                return result
            if not verdict.allowed:
                self._reject(result, RejectionCode.TRADING_BLOCKED, input, detail=verdict.reason)
                return result
            if verdict.reason:
                log.warning("risk_warning", reason=verdict.reason, level=assessment.level)
        else:
            log.warning("risk_control_disabled", rule_type=risk.rule_type)

        collected: list[RuleSignal] = []
        ordered = sorted(
            (p for p in producers if p is not risk and p.enabled),
            key=lambda p: p.priority,
        )
        for producer in ordered:
            try:
                produced = producer.generate_signal(input) or []
            except InvariantViolation:
                raise
            except Exception as exc:
                log.exception("producer_failed", rule_type=producer.rule_type)
                self._reject(
                    result, RejectionCode.PRODUCER_FAILED, input,
                    detail=f"{producer.rule_type}: {exc!r}",
                )
                continue
            collected.extend(s for s in produced if s.signal_type != "hold")

        result.signals = self._resolve(collected)
        result.recommendations = self._feasible(result.signals, input, result)

        log.debug(
            "arbitration_complete",
            producers=len(ordered),
            collected=len(collected),
            winners=len(result.signals),
            recommendations=len(result.recommendations),
            rejections=len(result.rejections),
        )
        return result

    def _short_circuit(
        self,
        risk: RiskControlRule,
        assessment: RiskAssessment,
        input: RuleInput,
        result: ArbitrationResult,
    ) -> ArbitrationResult:
        """Risk fired: only its own signals survive and no other producer runs."""
        log.warning(
            "risk_short_circuit",
            level=assessment.level,
            triggered_rules=assessment.triggered_rules,
        )
        signals = risk.generate_signal(input) or []
        _check_one_per_symbol(signals)
        result.signals = list(signals)
        result.recommendations = list(signals)
        for rule in assessment.triggered_rules:
            self._reject(result, RejectionCode.RISK_TRIGGERED, input, detail=rule)
        return result

    def _resolve(self, signals: list[RuleSignal]) -> list[RuleSignal]:
        """Keep the single highest-scoring signal per symbol; first seen wins ties."""
        best: dict[str, tuple[float, RuleSignal]] = {}
        for signal in signals:
            score = self.score(signal)
            current = best.get(signal.symbol)
            if current is None or score > current[0]:
                best[signal.symbol] = (score, signal)
        return [signal for _, signal in best.values()]

    def _feasible(
        self,
        signals: list[RuleSignal],
        input: RuleInput,
        result: ArbitrationResult,
    ) -> list[RuleSignal]:
        """Drop winners the account cannot fund or fill. Dropped winners are not replaced."""
        feasible: list[RuleSignal] = []
        for signal in signals:
            if signal.signal_type != "hold" and signal.suggested_amount is not None:
                failure = feasibility_failure(signal.signal_type, signal.symbol, signal.suggested_amount, input)
                if failure is not None:
                    code, detail = failure
                    self._reject(result, code, input, symbol=signal.symbol, detail=detail)
                    continue
            feasible.append(signal)
        return feasible
