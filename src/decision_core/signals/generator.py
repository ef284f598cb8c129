"""Signal generator — one detection cycle per (symbol, timeframe)."""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from decision_core.config.schema import DetectorConfig, FilterConfig
from decision_core.errors import InsufficientDataError
from decision_core.indicators.provider import IndicatorProvider
from decision_core.logging.audit import AuditTrail
from decision_core.models import (
    SUPPORTED_TIMEFRAMES,
    Candle,
    IndicatorSnapshot,
    MarketState,
    RejectionCode,
    Signal,
)
from decision_core.signals.detector import EventDetector
from decision_core.signals.filters import filter_signals
from decision_core.signals.history import HistoryStore

log = structlog.get_logger("signal_generator")

SOURCE = "signal_generator"


@dataclass
class GenerationStats:
    """Per-key counters for monitoring signal volume."""

    cycles: int = 0
    generated: int = 0
    kept: int = 0


def validate_input(symbol: str, timeframe: str, candles: Sequence[Candle]) -> str | None:
    """Return a reason string if the cycle input is malformed, else None."""
    if not symbol or not symbol.strip():
        return "empty symbol"
    if timeframe not in SUPPORTED_TIMEFRAMES:
        return f"unsupported timeframe {timeframe!r}"
    previous_ts: datetime | None = None
    for i, candle in enumerate(candles):
        if candle.close <= 0:
            return f"candle {i} has non-positive close"
        if candle.volume < 0:
            return f"candle {i} has negative volume"
        if previous_ts is not None and candle.timestamp <= previous_ts:
            return f"candle {i} timestamp is not strictly increasing"
        previous_ts = candle.timestamp
    return None


class SignalGenerator:
    """Runs detection against the history store and applies the quality filter.

    The store, detector and audit trail are injected so that whoever composes
    the pipeline owns them.
    """

    def __init__(
        self,
        detector: EventDetector | None = None,
        store: HistoryStore | None = None,
        filter_config: FilterConfig | None = None,
        provider: IndicatorProvider | None = None,
        audit: AuditTrail | None = None,
    ) -> None:
        self.detector = detector or EventDetector(DetectorConfig())
        self.store = store if store is not None else HistoryStore()
        self.filter_config = filter_config or FilterConfig()
        self.provider = provider
        self.audit = audit if audit is not None else AuditTrail()
        self._stats: dict[tuple[str, str], GenerationStats] = defaultdict(GenerationStats)
        self._stats_lock = threading.Lock()

    def generate(
        self,
        symbol: str,
        timeframe: str,
        snapshot: IndicatorSnapshot,
        *,
        candles: Sequence[Candle] = (),
        market_state: MarketState | None = None,
        ts: datetime | None = None,
    ) -> list[Signal]:
        """Detect, commit the snapshot as history, then filter.

        Malformed input returns ``[]`` without touching the store.
        """
        ts = ts or datetime.now(timezone.utc)
        reason = validate_input(symbol, timeframe, candles)
        if reason is not None:
            self.audit.record(
                RejectionCode.INPUT_INVALID, source=SOURCE, symbol=symbol or None, detail=reason, ts=ts,
            )
            return []

        with self.store.cycle(symbol, timeframe) as cycle:
            raw = self.detector.detect(
                symbol,
                timeframe,
                cycle.previous,
                snapshot,
                recent_candles=candles,
                market_state=market_state,
                ts=ts,
            )
            cycle.commit(snapshot)

        kept = filter_signals(raw, self.filter_config.min_strength, self.filter_config.max_signals)
        above_floor = sum(1 for s in raw if s.strength >= self.filter_config.min_strength)
        if above_floor > len(kept):
            log.warning(
                "signal_cap_reached",
                symbol=symbol,
                timeframe=timeframe,
                above_floor=above_floor,
                kept=len(kept),
                max_signals=self.filter_config.max_signals,
            )

        with self._stats_lock:
            stats = self._stats[(symbol, timeframe)]
            stats.cycles += 1
            stats.generated += len(raw)
            stats.kept += len(kept)

        log.debug(
            "signals_generated",
            symbol=symbol,
            timeframe=timeframe,
            generated=len(raw),
            kept=len(kept),
            types=[s.type.value for s in kept],
        )
        return kept

    def generate_from_candles(
        self,
        symbol: str,
        timeframe: str,
        candles: Sequence[Candle],
        *,
        market_state: MarketState | None = None,
        ts: datetime | None = None,
    ) -> list[Signal]:
        """Build the snapshot with the injected provider, then ``generate``."""
        if self.provider is None:
            raise RuntimeError("No indicator provider configured")
        reason = validate_input(symbol, timeframe, candles)
        if reason is not None:
            self.audit.record(
                RejectionCode.INPUT_INVALID, source=SOURCE, symbol=symbol or None, detail=reason, ts=ts,
            )
            return []
        try:
            snapshot = self.provider.snapshot(candles)
        except InsufficientDataError as exc:
            self.audit.record(
                RejectionCode.INSUFFICIENT_DATA, source=SOURCE, symbol=symbol, detail=str(exc), ts=ts,
            )
            return []
        return self.generate(
            symbol, timeframe, snapshot, candles=candles, market_state=market_state, ts=ts,
        )

    def stats(self, symbol: str, timeframe: str) -> GenerationStats:
        with self._stats_lock:
            s = self._stats.get((symbol, timeframe), GenerationStats())
            return GenerationStats(cycles=s.cycles, generated=s.generated, kept=s.kept)
