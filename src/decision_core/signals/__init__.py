"""Signal generation: event detection over rolling history plus quality filtering."""

from decision_core.signals.detector import EventDetector, SignalIdFactory
from decision_core.signals.filters import filter_signals
from decision_core.signals.generator import GenerationStats, SignalGenerator, validate_input
from decision_core.signals.history import HistoryCycle, HistoryStore

__all__ = [
    "EventDetector",
    "GenerationStats",
    "HistoryCycle",
    "HistoryStore",
    "SignalGenerator",
    "SignalIdFactory",
    "filter_signals",
    "validate_input",
]
