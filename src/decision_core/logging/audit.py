"""Rejection audit trail — every dropped signal or decision leaves a record."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import structlog

from decision_core.models import Rejection, RejectionCode

log = structlog.get_logger("audit")

# Outcomes that indicate something is wrong rather than normal filtering.
_WARN_CODES = {
    RejectionCode.INPUT_INVALID,
    RejectionCode.SYMBOL_CYCLE_FAILED,
    RejectionCode.PRODUCER_FAILED,
    RejectionCode.RISK_TRIGGERED,
    RejectionCode.RISK_ASSESSMENT_FAILED,
}


class AuditTrail:
    """Thread-safe collector of Rejection records; logs each one as it arrives."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[Rejection] = []

    def record(
        self,
        code: RejectionCode,
        *,
        source: str,
        symbol: str | None = None,
        detail: str = "",
        ts: datetime | None = None,
    ) -> Rejection:
        rejection = Rejection(
            code=code,
            symbol=symbol,
            source=source,
            detail=detail,
            timestamp=ts or datetime.now(timezone.utc),
        )
        return self.add(rejection)

    def add(self, rejection: Rejection) -> Rejection:
        with self._lock:
            self._records.append(rejection)
        emit = log.warning if rejection.code in _WARN_CODES else log.info
        emit(
            "decision_rejected",
            code=rejection.code.value,
            symbol=rejection.symbol,
            source=rejection.source,
            detail=rejection.detail,
        )
        return rejection

    def extend(self, rejections: list[Rejection]) -> None:
        for rejection in rejections:
            self.add(rejection)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def records(self) -> list[Rejection]:
        with self._lock:
            return list(self._records)

    def for_symbol(self, symbol: str) -> list[Rejection]:
        return [r for r in self.records if r.symbol == symbol]

    def drain(self) -> list[Rejection]:
        """Return and clear all collected records."""
        with self._lock:
            records, self._records = self._records, []
        return records
