"""Decision pipeline — composes generation, arbitration and validation."""

from decision_core.pipeline.runner import CycleResult, DecisionPipeline, SymbolMarket, SymbolOutcome

__all__ = ["CycleResult", "DecisionPipeline", "SymbolMarket", "SymbolOutcome"]
