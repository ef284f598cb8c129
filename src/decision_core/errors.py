"""Exception types raised by the decision core."""

from __future__ import annotations


class InvariantViolation(AssertionError):
    """The core's own arbitration or validation logic produced an impossible state.

    Never caught inside the core: it signals a defect, not a market condition.
    """


class InsufficientDataError(ValueError):
    """An indicator provider was given too few candles to compute its indicators."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"need at least {required} candles, got {available}")
        self.required = required
        self.available = available
