"""
Backtest orchestration for lump-sum dividend simulations.

Runs the simulation engine for the target symbol and, when it differs, for
the benchmark symbol, then composes both into a single report. A failed
benchmark run never affects the target result.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from drip_pilot.data.corporate_actions import CorporateActionProvider
from drip_pilot.data.providers.base import DataProvider
from drip_pilot.logging.decision_log import DecisionLogger
from drip_pilot.models import (
    BacktestConfig,
    BacktestReport,
    BenchmarkSummary,
    SimulationResult,
)
from drip_pilot.simulation.engine import SimulationEngine


logger = logging.getLogger(__name__)

# Fubon Taiwan 50 ETF
DEFAULT_BENCHMARK_SYMBOL = "006208"


def new_run_id(config: BacktestConfig) -> str:
    """Default run identifier: symbol, date range and a random suffix."""
    return f"backtest_{config.symbol}_{config.start_date}_{config.end_date}_{uuid.uuid4().hex[:8]}"


def simulate_symbol(
    provider: DataProvider,
    config: BacktestConfig,
    engine: SimulationEngine,
    corporate_actions: CorporateActionProvider,
) -> SimulationResult:
    """
    Fetch data for config.symbol and run one simulation.

    Only static splits are passed to the engine: stock dividends already
    reach it through the dividend queue, so derived splits would count them
    twice.

    Raises:
        DataProviderError: If data cannot be fetched
        EmptyPriceSeriesError: If there are no price bars in range
    """
    bars = provider.get_price_bars(config.symbol, config.start_date, config.end_date)
    dividends = provider.get_dividends(config.symbol, config.start_date, config.end_date)
    splits = corporate_actions.list_splits(
        config.symbol,
        config.start_date,
        config.end_date,
        include_derived=False,
    )
    return engine.run(bars, dividends, splits, config)


def summarize_benchmark(result: SimulationResult) -> BenchmarkSummary:
    """Reduce a benchmark run to the numbers shown alongside the target."""
    return BenchmarkSummary(
        symbol=result.symbol,
        total_return=result.total_return,
        return_rate=result.return_rate,
    )


def run_benchmark(
    provider: DataProvider,
    config: BacktestConfig,
    benchmark_symbol: str,
    engine: SimulationEngine,
    corporate_actions: CorporateActionProvider,
    run_id: Optional[str] = None,
    decision_logger: Optional[DecisionLogger] = None,
) -> Optional[BenchmarkSummary]:
    """
    Run the benchmark with the target's configuration.

    Args:
        provider: Data provider
        config: Target configuration; only the symbol is replaced
        benchmark_symbol: Benchmark to simulate
        engine: Simulation engine
        corporate_actions: Split source
        run_id: Run identifier for log entries
        decision_logger: Optional audit logger

    Returns:
        BenchmarkSummary, or None when the target is the benchmark or the
        benchmark run failed for any reason
    """
    if config.symbol.strip() == benchmark_symbol.strip():
        return None

    benchmark_config = replace(config, symbol=benchmark_symbol)
    try:
        result = simulate_symbol(provider, benchmark_config, engine, corporate_actions)
    except Exception as e:
        logger.warning("Benchmark %s omitted: %s", benchmark_symbol, e)
        if decision_logger is not None:
            decision_logger.log_benchmark_skipped(run_id, benchmark_symbol, str(e))
        return None

    if decision_logger is not None:
        decision_logger.log_benchmark_completed(run_id, result)

    return summarize_benchmark(result)


def run_backtest(
    provider: DataProvider,
    config: BacktestConfig,
    corporate_actions: Optional[CorporateActionProvider] = None,
    engine: Optional[SimulationEngine] = None,
    benchmark_symbol: str = DEFAULT_BENCHMARK_SYMBOL,
    id_factory: Callable[[BacktestConfig], str] = new_run_id,
    clock: Callable[[], datetime] = datetime.now,
    decision_logger: Optional[DecisionLogger] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> BacktestReport:
    """
    Run a complete backtest with benchmark comparison.

    Args:
        provider: Data provider for prices and dividends
        config: Backtest configuration
        corporate_actions: Split source (default static table)
        engine: Simulation engine (default fee schedule if None)
        benchmark_symbol: Reference benchmark
        id_factory: Produces the report's run_id
        clock: Produces the report's created_at timestamp
        decision_logger: Optional audit logger
        progress_callback: Optional callback for progress updates

    Returns:
        BacktestReport with the target result and optional benchmark

    Raises:
        DataProviderError: If target data cannot be fetched
        EmptyPriceSeriesError: If the target has no prices in range
    """
    corporate_actions = corporate_actions or CorporateActionProvider()
    engine = engine or SimulationEngine()

    if progress_callback:
        progress_callback(f"Simulating {config.symbol}...")

    result = simulate_symbol(provider, config, engine, corporate_actions)
    run_id = id_factory(config)

    if progress_callback and config.symbol.strip() != benchmark_symbol.strip():
        progress_callback(f"Simulating benchmark {benchmark_symbol}...")

    benchmark = run_benchmark(
        provider,
        config,
        benchmark_symbol,
        engine,
        corporate_actions,
        run_id=run_id,
        decision_logger=decision_logger,
    )

    report = BacktestReport(
        run_id=run_id,
        created_at=clock(),
        config=config,
        result=result,
        benchmark=benchmark,
    )

    if decision_logger is not None:
        decision_logger.log_backtest_completed(report)

    if progress_callback:
        progress_callback("Backtest complete!")

    return report
