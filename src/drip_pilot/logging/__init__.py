"""
Decision logging module for the DRIP backtest system.

Provides append-only decision logging for audit and reproducibility.
"""

from drip_pilot.logging.decision_log import (
    DecisionLogger,
    log_action,
    get_logger,
)

__all__ = [
    "DecisionLogger",
    "log_action",
    "get_logger",
]
