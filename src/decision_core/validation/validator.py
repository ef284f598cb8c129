"""Decision validator — last gate before a candidate becomes an executable decision."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from decision_core.config.schema import ValidatorConfig
from decision_core.errors import InvariantViolation
from decision_core.logging.audit import AuditTrail
from decision_core.models import (
    Decision,
    DecisionCandidate,
    MarketState,
    Rejection,
    RejectionCode,
    ValidationResult,
)

log = structlog.get_logger("validator")

SOURCE = "decision_validator"


def _reject(code: RejectionCode, reason: str) -> ValidationResult:
    return ValidationResult(valid=False, code=code, reason=reason)


class DecisionValidator:
    """Checks confidence, direction, bracket geometry and market volatility.

    Checks run in a fixed order and the first failure wins. A bracket on the
    wrong side of the price is rejected, never corrected.
    """

    def __init__(self, config: ValidatorConfig | None = None, audit: AuditTrail | None = None) -> None:
        self.config = config or ValidatorConfig()
        self.audit = audit if audit is not None else AuditTrail()

    def validate(self, candidate: DecisionCandidate, market_state: MarketState) -> ValidationResult:
        cfg = self.config

        if candidate.confidence < cfg.min_confidence:
            return _reject(
                RejectionCode.LOW_CONFIDENCE,
                f"confidence {candidate.confidence:.3f} < {cfg.min_confidence}",
            )
        if candidate.action == "hold":
            return _reject(RejectionCode.NO_ACTION, "no trade direction")

        sl, tp = candidate.stop_loss, candidate.take_profit
        if not sl or not tp or sl <= 0 or tp <= 0:
            return _reject(RejectionCode.MISSING_BRACKET, "stop-loss and take-profit are required")
        price = candidate.suggested_price
        if not price or price <= 0:
            return _reject(RejectionCode.MISSING_PRICE, "suggested price is required")
        amount = candidate.suggested_amount
        if amount is None or amount <= 0:
            return _reject(RejectionCode.MISSING_AMOUNT, f"suggested amount must be positive, got {amount}")

        if candidate.action == "buy" and not (sl < price < tp):
            return _reject(
                RejectionCode.WRONG_SIDE_BRACKET,
                f"buy needs stop_loss < price < take_profit, got {sl} / {price} / {tp}",
            )
        if candidate.action == "sell" and not (tp < price < sl):
            return _reject(
                RejectionCode.WRONG_SIDE_BRACKET,
                f"sell needs take_profit < price < stop_loss, got {tp} / {price} / {sl}",
            )

        sl_pct = abs(sl - price) / price
        tp_pct = abs(tp - price) / price
        if sl_pct < cfg.min_bracket_pct or tp_pct < cfg.min_bracket_pct:
            return _reject(
                RejectionCode.BRACKET_TOO_NARROW,
                f"bracket {sl_pct:.4%}/{tp_pct:.4%} below {cfg.min_bracket_pct:.4%}",
            )
        if sl_pct > cfg.max_bracket_pct or tp_pct > cfg.max_bracket_pct:
            return _reject(
                RejectionCode.BRACKET_TOO_WIDE,
                f"bracket {sl_pct:.4%}/{tp_pct:.4%} above {cfg.max_bracket_pct:.4%}",
            )

        if market_state.volatility == "extreme":
            return _reject(RejectionCode.EXTREME_VOLATILITY, "market volatility is extreme")
        if market_state.volatility == "unknown" and cfg.reject_unknown_volatility:
            return _reject(RejectionCode.UNKNOWN_VOLATILITY, "market volatility is unknown")

        return ValidationResult(valid=True)

    def to_decision(self, candidate: DecisionCandidate) -> Decision:
        """Freeze a validated candidate. Missing bracket or size fields here are a bug upstream."""
        if (
            candidate.action == "hold"
            or candidate.suggested_price is None
            or candidate.suggested_amount is None
            or candidate.suggested_amount <= 0
            or candidate.stop_loss is None
            or candidate.take_profit is None
        ):
            raise InvariantViolation(f"unvalidated candidate for {candidate.symbol} reached to_decision")
        return Decision(
            symbol=candidate.symbol,
            action=candidate.action,
            confidence=candidate.confidence,
            combined_score=candidate.combined_score,
            reason=candidate.reason,
            suggested_price=candidate.suggested_price,
            suggested_amount=candidate.suggested_amount,
            stop_loss=candidate.stop_loss,
            take_profit=candidate.take_profit,
            timestamp=candidate.timestamp,
            source_signals=list(candidate.source_signals),
        )

    def accept(
        self,
        candidates: Iterable[DecisionCandidate],
        market_state: MarketState,
    ) -> tuple[list[Decision], list[Rejection]]:
        """Validate each candidate; return accepted decisions and audited rejections."""
        decisions: list[Decision] = []
        rejections: list[Rejection] = []
        for candidate in candidates:
            result = self.validate(candidate, market_state)
            if result.valid:
                decisions.append(self.to_decision(candidate))
                continue
            rejections.append(
                self.audit.record(
                    result.code,
                    source=SOURCE,
                    symbol=candidate.symbol,
                    detail=result.reason or "",
                    ts=candidate.timestamp,
                )
            )
        log.debug("candidates_validated", accepted=len(decisions), rejected=len(rejections))
        return decisions, rejections
