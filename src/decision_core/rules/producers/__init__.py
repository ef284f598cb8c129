"""Example rule producers — importing this package registers them."""

from decision_core.rules.producers.dca import DCARule, DCAState
from decision_core.rules.producers.grid import GridOrder, GridRule

__all__ = ["DCARule", "DCAState", "GridOrder", "GridRule"]
