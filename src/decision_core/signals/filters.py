"""Signal quality filter — strength floor and volume cap, pure functions."""

from __future__ import annotations

from collections.abc import Iterable

from decision_core.models import Signal


def filter_signals(
    signals: Iterable[Signal],
    min_strength: float,
    max_signals: int,
) -> list[Signal]:
    """Drop weak signals and keep at most *max_signals* of the rest.

    Survivors are ordered by strength descending; equal strengths are
    ordered by signal id so the cut is deterministic.
    """
    kept = [s for s in signals if s.strength >= min_strength]
    kept.sort(key=lambda s: (-s.strength, s.id))
    return kept[:max_signals]
