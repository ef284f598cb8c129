"""Decision pipeline — one cycle from market snapshots to vetted decisions."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from decision_core.config.schema import AppConfig, BracketConfig, RuleConfig
from decision_core.errors import InsufficientDataError, InvariantViolation
from decision_core.indicators import IndicatorProvider, classify_market
from decision_core.logging import AuditTrail, cycle_context
from decision_core.models import (
    Candle,
    Decision,
    DecisionCandidate,
    IndicatorSnapshot,
    MarketState,
    Rejection,
    RejectionCode,
    RuleInput,
    Signal,
)
from decision_core.rules import (
    ArbitrationResult,
    RiskControlRule,
    RuleArbitrator,
    RuleProducer,
    build_producers,
    feasibility_failure,
)
from decision_core.signals import EventDetector, SignalGenerator
from decision_core.validation import DecisionValidator, candidate_from_rule_signal, candidate_from_signal

log = structlog.get_logger("pipeline")

SOURCE = "decision_pipeline"


class SymbolMarket(BaseModel):
    """Per-symbol input for one cycle. Either a snapshot or enough candles to build one."""

    symbol: str
    timeframe: str = "15m"
    snapshot: IndicatorSnapshot | None = None
    candles: list[Candle] = Field(default_factory=list)


@dataclass
class SymbolOutcome:
    symbol: str
    market_state: MarketState | None = None
    signals: list[Signal] = field(default_factory=list)
    price: float | None = None


@dataclass
class CycleResult:
    decisions: list[Decision] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)
    signals: list[Signal] = field(default_factory=list)
    arbitration: ArbitrationResult | None = None


class DecisionPipeline:
    """Composes signal generation, rule arbitration and validation.

    All collaborators are injected; ``from_config`` wires the defaults. A
    pipeline runs one cycle at a time: each cycle drains the shared audit
    trail into its CycleResult, so the trail is empty between cycles.
    """

    def __init__(
        self,
        generator: SignalGenerator,
        arbitrator: RuleArbitrator,
        validator: DecisionValidator,
        audit: AuditTrail,
        producers: Sequence[RuleProducer] = (),
        bracket: BracketConfig | None = None,
    ) -> None:
        self.generator = generator
        self.arbitrator = arbitrator
        self.validator = validator
        self.audit = audit
        self.producers = list(producers)
        self.bracket = bracket or BracketConfig()

    @classmethod
    def from_config(cls, config: AppConfig, provider: IndicatorProvider | None = None) -> DecisionPipeline:
        audit = AuditTrail()
        rules = dict(config.rules)
        if RiskControlRule.rule_type not in rules:
            rules[RiskControlRule.rule_type] = RuleConfig(priority=0)
        return cls(
            generator=SignalGenerator(
                detector=EventDetector(config.detector),
                filter_config=config.filter,
                provider=provider,
                audit=audit,
            ),
            arbitrator=RuleArbitrator(config.arbitration, audit),
            validator=DecisionValidator(config.validator, audit),
            audit=audit,
            producers=build_producers(rules),
            bracket=config.bracket,
        )

    # ── Step 1: per-symbol signal generation ─────────────────

    def _snapshot(self, market: SymbolMarket, ts: datetime) -> IndicatorSnapshot | None:
        if market.snapshot is not None:
            return market.snapshot
        provider = self.generator.provider
        if provider is None:
            raise RuntimeError(f"No snapshot for {market.symbol} and no indicator provider configured")
        try:
            return provider.snapshot(market.candles)
        except InsufficientDataError as exc:
            self.audit.record(
                RejectionCode.INSUFFICIENT_DATA, source=SOURCE, symbol=market.symbol, detail=str(exc), ts=ts,
            )
            return None

    def symbol_cycle(self, market: SymbolMarket, ts: datetime) -> SymbolOutcome:
        """Classify and generate for one symbol; failures are isolated to that symbol."""
        outcome = SymbolOutcome(symbol=market.symbol)
        with cycle_context(symbol=market.symbol, timeframe=market.timeframe):
            try:
                snapshot = self._snapshot(market, ts)
                if snapshot is None:
                    return outcome
                outcome.market_state = classify_market(snapshot)
                outcome.price = snapshot.price
                outcome.signals = self.generator.generate(
                    market.symbol,
                    market.timeframe,
                    snapshot,
                    candles=market.candles,
                    market_state=outcome.market_state,
                    ts=ts,
                )
            except InvariantViolation:
                raise
            except Exception as exc:
                log.exception("symbol_cycle_failed")
                self.audit.record(
                    RejectionCode.SYMBOL_CYCLE_FAILED,
                    source=SOURCE,
                    symbol=market.symbol,
                    detail=repr(exc),
                    ts=ts,
                )
                outcome.signals = []
        return outcome

    # ── Steps 2-5 ─────────────────────────────────────────────

    def _finish(
        self,
        outcomes: list[SymbolOutcome],
        rule_input: RuleInput,
        producers: Sequence[RuleProducer],
    ) -> CycleResult:
        arbitration = self.arbitrator.arbitrate(producers, rule_input)

        states: dict[str, MarketState] = {}
        prices: dict[str, float] = {}
        for outcome in outcomes:
            if outcome.market_state is not None:
                states.setdefault(outcome.symbol, outcome.market_state)
            if outcome.price is not None:
                prices.setdefault(outcome.symbol, outcome.price)

        def market_price(symbol: str) -> float | None:
            quote = rule_input.price_for(symbol)
            return quote.price if quote else prices.get(symbol)

        candidates: list[DecisionCandidate] = []
        if not arbitration.risk_triggered and not arbitration.blocked:
            for outcome in outcomes:
                price = market_price(outcome.symbol)
                if price is None:
                    continue
                position = rule_input.position_for(outcome.symbol)
                held = position.amount if position else 0.0
                for signal in outcome.signals:
                    candidate = candidate_from_signal(
                        signal, price, rule_input.available_balance, self.bracket, held=held,
                    )
                    if candidate is not None and self._feasible(candidate, rule_input):
                        candidates.append(candidate)

        for rule_signal in arbitration.recommendations:
            price = rule_signal.suggested_price or market_price(rule_signal.symbol)
            if price is None:
                log.warning("recommendation_without_price", symbol=rule_signal.symbol)
                continue
            candidate = candidate_from_rule_signal(
                rule_signal, price, self.bracket, score=self.arbitrator.score(rule_signal),
            )
            if candidate is not None:
                candidates.append(candidate)

        accepted: list[tuple[DecisionCandidate, Decision]] = []
        for candidate in candidates:
            decisions, _ = self.validator.accept(
                [candidate], states.get(candidate.symbol, MarketState()),
            )
            accepted.extend((candidate, d) for d in decisions)

        decisions = self._one_per_symbol(accepted)
        rejections = self.audit.drain()
        log.info(
            "cycle_complete",
            symbols=len(outcomes),
            candidates=len(candidates),
            decisions=len(decisions),
            rejections=len(rejections),
            risk_triggered=arbitration.risk_triggered,
        )
        return CycleResult(
            decisions=decisions,
            rejections=rejections,
            signals=[s for o in outcomes for s in o.signals],
            arbitration=arbitration,
        )

    def _feasible(self, candidate: DecisionCandidate, rule_input: RuleInput) -> bool:
        """Same balance and position check the arbitrator applies to rule winners."""
        failure = feasibility_failure(candidate.action, candidate.symbol, candidate.suggested_amount, rule_input)
        if failure is None:
            return True
        code, detail = failure
        self.audit.record(code, source=SOURCE, symbol=candidate.symbol, detail=detail, ts=candidate.timestamp)
        return False

    @staticmethod
    def _one_per_symbol(accepted: list[tuple[DecisionCandidate, Decision]]) -> list[Decision]:
        """Highest combined score per symbol; a rule recommendation wins a tie."""
        best: dict[str, tuple[tuple[float, int], Decision]] = {}
        for candidate, decision in accepted:
            key = (decision.combined_score, 1 if candidate.source == "rule" else 0)
            current = best.get(decision.symbol)
            if current is None or key > current[0]:
                if current is not None:
                    log.debug("decision_superseded", symbol=decision.symbol, reason=current[1].reason)
                best[decision.symbol] = (key, decision)
        return [decision for _, decision in best.values()]

    # ── Entry points ──────────────────────────────────────────

    def run_cycle(
        self,
        markets: Sequence[SymbolMarket],
        rule_input: RuleInput,
        producers: Sequence[RuleProducer] | None = None,
    ) -> CycleResult:
        ts = rule_input.timestamp
        outcomes = [self.symbol_cycle(market, ts) for market in markets]
        return self._finish(outcomes, rule_input, self.producers if producers is None else producers)

    async def run_cycle_async(
        self,
        markets: Sequence[SymbolMarket],
        rule_input: RuleInput,
        producers: Sequence[RuleProducer] | None = None,
    ) -> CycleResult:
        """Same as run_cycle, with per-symbol generation fanned out to worker threads."""
        ts = rule_input.timestamp
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self.symbol_cycle, market, ts) for market in markets)
        )
        return self._finish(list(outcomes), rule_input, self.producers if producers is None else producers)
