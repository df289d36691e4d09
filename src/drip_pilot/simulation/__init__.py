"""
Simulation module for the DRIP backtest system.

Provides the day-stepped simulation engine, backtest orchestration with
benchmark comparison, metrics and reports.
"""

from drip_pilot.simulation.engine import (
    EmptyPriceSeriesError,
    PortfolioState,
    SimulationEngine,
    SimulationError,
    run_simulation,
)
from drip_pilot.simulation.backtest import run_backtest, DEFAULT_BENCHMARK_SYMBOL
from drip_pilot.simulation.metrics import calculate_metrics, SimulationMetrics
from drip_pilot.simulation.report import generate_report, generate_quick_summary

__all__ = [
    "EmptyPriceSeriesError",
    "PortfolioState",
    "SimulationEngine",
    "SimulationError",
    "run_simulation",
    "run_backtest",
    "DEFAULT_BENCHMARK_SYMBOL",
    "calculate_metrics",
    "SimulationMetrics",
    "generate_report",
    "generate_quick_summary",
]
