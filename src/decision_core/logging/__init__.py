"""Structured logging and the rejection audit trail."""

from decision_core.logging.audit import AuditTrail
from decision_core.logging.setup import cycle_context, get_logger, setup_logging

__all__ = ["AuditTrail", "cycle_context", "get_logger", "setup_logging"]
