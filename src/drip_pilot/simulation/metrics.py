"""
Performance metrics calculation for simulation results.

Calculates standard performance metrics from the equity curve and ledger:
- CAGR (Compound Annual Growth Rate)
- Volatility (annualized)
- Sharpe Ratio
- Maximum Drawdown and its date
- Fee, tax and dividend totals
"""

import json
import math
from dataclasses import dataclass, asdict
from decimal import Decimal
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from drip_pilot.models import BenchmarkSummary, SimulationResult, TransactionType


TRADING_DAYS_PER_YEAR = 252


@dataclass
class SimulationMetrics:
    """Container for simulation performance metrics."""

    # Time period
    start_date: str
    end_date: str
    trading_days: int

    # Returns
    total_return: float
    cagr: float
    annualized_volatility: float
    sharpe_ratio: float

    # Risk
    max_drawdown: float
    max_drawdown_date: str
    avg_drawdown: float

    # Ledger
    buy_trades: int
    sell_trades: int
    cash_dividend_payments: int
    stock_dividend_payments: int
    split_events: int
    reinvested_shares: int
    total_fees: float
    total_tax: float
    total_cash_dividends: float

    # Outcome
    final_value: float

    # Benchmark (if available)
    benchmark_return: Optional[float] = None
    excess_return: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, path: Path) -> None:
        """Save metrics to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, path: Path) -> "SimulationMetrics":
        """Load metrics from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


def calculate_metrics(
    result: SimulationResult,
    investment_amount: Decimal,
    benchmark: Optional[BenchmarkSummary] = None,
    risk_free_rate: float = 0.01,
) -> SimulationMetrics:
    """
    Calculate performance metrics from a simulation result.

    Returns are fractions (0.12 = 12%), unlike the percentage figures on
    SimulationResult.

    Args:
        result: Simulation result
        investment_amount: Initial investment
        benchmark: Optional benchmark summary for excess return
        risk_free_rate: Annual risk-free rate for Sharpe ratio (default 1%)

    Returns:
        SimulationMetrics with all calculated values
    """
    if not result.equity_curve:
        raise ValueError("No equity curve provided for metrics calculation")

    df = equity_curve_to_dataframe(result)
    df["date"] = pd.to_datetime(df["date"])
    df = df.set_index("date")

    trading_days = len(df)
    years = trading_days / TRADING_DAYS_PER_YEAR

    initial_value = float(investment_amount)
    final_value = float(result.final_market_value)
    total_return = (final_value - initial_value) / initial_value

    # CAGR
    if years > 0 and final_value > 0:
        cagr = (final_value / initial_value) ** (1 / years) - 1
    elif final_value <= 0:
        cagr = -1.0
    else:
        cagr = 0.0

    # Volatility (annualized)
    daily_returns = df["value"].pct_change().replace([np.inf, -np.inf], np.nan).dropna()
    if len(daily_returns) > 1:
        annualized_volatility = float(daily_returns.std()) * math.sqrt(TRADING_DAYS_PER_YEAR)
    else:
        annualized_volatility = 0.0

    # Sharpe Ratio
    daily_rf = risk_free_rate / TRADING_DAYS_PER_YEAR
    if annualized_volatility > 0:
        excess_returns = daily_returns - daily_rf
        sharpe_ratio = float(excess_returns.mean() * TRADING_DAYS_PER_YEAR) / annualized_volatility
    else:
        sharpe_ratio = 0.0

    # Maximum Drawdown
    drawdown = df["drawdown"]
    max_drawdown = float(drawdown.min())
    max_drawdown_date = drawdown.idxmin().strftime("%Y-%m-%d") if max_drawdown < 0 else ""
    avg_drawdown = float(drawdown.mean())

    # Ledger statistics
    events = result.events
    counts = {t: 0 for t in TransactionType}
    for event in events:
        counts[event.type] += 1

    reinvested_shares = sum(
        e.shares or 0 for e in events if e.type == TransactionType.DIVIDEND_CASH
    )
    total_fees = sum((e.fee for e in events), Decimal("0"))
    total_tax = sum((e.tax for e in events), Decimal("0"))

    benchmark_return = None
    excess_return = None
    if benchmark is not None:
        benchmark_return = float(benchmark.return_rate) / 100
        excess_return = total_return - benchmark_return

    return SimulationMetrics(
        start_date=result.equity_curve[0].date.isoformat(),
        end_date=result.equity_curve[-1].date.isoformat(),
        trading_days=trading_days,
        total_return=round(total_return, 6),
        cagr=round(cagr, 6),
        annualized_volatility=round(annualized_volatility, 6),
        sharpe_ratio=round(sharpe_ratio, 4),
        max_drawdown=round(max_drawdown, 6),
        max_drawdown_date=max_drawdown_date,
        avg_drawdown=round(avg_drawdown, 6),
        buy_trades=counts[TransactionType.BUY],
        sell_trades=counts[TransactionType.SELL],
        cash_dividend_payments=counts[TransactionType.DIVIDEND_CASH],
        stock_dividend_payments=counts[TransactionType.DIVIDEND_STOCK],
        split_events=counts[TransactionType.SPLIT],
        reinvested_shares=reinvested_shares,
        total_fees=round(float(total_fees), 2),
        total_tax=round(float(total_tax), 2),
        total_cash_dividends=round(float(result.total_cash_dividends), 2),
        final_value=round(final_value, 2),
        benchmark_return=round(benchmark_return, 6) if benchmark_return is not None else None,
        excess_return=round(excess_return, 6) if excess_return is not None else None,
    )


def equity_curve_to_dataframe(result: SimulationResult) -> pd.DataFrame:
    """
    Equity curve with daily return and drawdown columns.

    Returns:
        DataFrame with columns date, value, daily_return, drawdown
    """
    df = pd.DataFrame(
        [{"date": p.date, "value": float(p.value)} for p in result.equity_curve],
        columns=["date", "value"],
    )
    df["daily_return"] = df["value"].pct_change().fillna(0.0)
    running_max = df["value"].cummax()
    df["drawdown"] = ((df["value"] - running_max) / running_max).fillna(0.0)
    return df
