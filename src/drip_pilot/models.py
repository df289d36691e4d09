"""
Core data models for the DRIP backtest system.

This module defines the fundamental data structures used throughout the system,
including price bars, corporate actions, the backtest configuration, the
transaction ledger and simulation results.
All monetary amounts and prices use Decimal for precision; share counts are int.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(Enum):
    """Kind of entry recorded in the event ledger."""
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND_CASH = "DIVIDEND_CASH"
    DIVIDEND_STOCK = "DIVIDEND_STOCK"
    SPLIT = "SPLIT"


class SplitSource(Enum):
    """Provenance of a split event."""
    STATIC = "STATIC"    # Curated split table
    DERIVED = "DERIVED"  # Implied by a stock dividend record


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    CONFIG_LOADED = "CONFIG_LOADED"
    BACKTEST_COMPLETED = "BACKTEST_COMPLETED"
    BENCHMARK_COMPLETED = "BENCHMARK_COMPLETED"
    BENCHMARK_SKIPPED = "BENCHMARK_SKIPPED"


@dataclass(frozen=True)
class PriceBar:
    """
    Daily OHLCV bar for a single trading day.

    Attributes:
        date: Trading date
        open: Opening price
        high: Session high
        low: Session low
        close: Closing price
        volume: Shares traded
    """
    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0


@dataclass(frozen=True)
class DividendEvent:
    """
    Dividend distribution record.

    Attributes:
        date: Date the distribution takes effect
        cash_per_share: Cash paid per held share
        stock_ratio_per_10: Stock dividend units per 10 held shares
    """
    date: date
    cash_per_share: Decimal = Decimal("0")
    stock_ratio_per_10: Decimal = Decimal("0")


@dataclass(frozen=True)
class SplitEvent:
    """
    Forward split (share multiplying) event.

    Attributes:
        effective_date: First trading day the new share count applies
        share_multiplier: Held shares are multiplied by this value
        source: Static table entry or derived from a stock dividend
        description: Optional human readable note
    """
    effective_date: date
    share_multiplier: Decimal
    source: SplitSource = SplitSource.STATIC
    description: str = ""


@dataclass
class BacktestConfig:
    """
    Configuration for a single lump-sum backtest.

    Attributes:
        symbol: Exchange symbol to simulate
        start_date: First date of the range (inclusive)
        end_date: Last date of the range (inclusive)
        investment_amount: Cash invested on the first trading day
        use_drip: Reinvest cash dividends when affordable
        fee_discount: Broker discount on the fee rate, 10 means no discount
        deduct_tax: Deduct transaction tax on the final sell
    """
    symbol: str
    start_date: date
    end_date: date
    investment_amount: Decimal
    use_drip: bool = True
    fee_discount: Decimal = Decimal("10")
    deduct_tax: bool = True


@dataclass(frozen=True)
class FeeSchedule:
    """
    Brokerage fee and transaction tax rates.

    Defaults follow the Taiwan stock exchange: 0.1425% brokerage fee with a
    NT$20 minimum and 0.3% securities transaction tax on sells.
    """
    fee_rate: Decimal = Decimal("0.001425")
    min_fee: Decimal = Decimal("20")
    tax_rate: Decimal = Decimal("0.003")


@dataclass(frozen=True)
class TransactionEvent:
    """
    Append-only ledger record.

    Attributes:
        date: Trading day the event was applied
        type: Kind of event
        amount: Cash value of the event (negative for purchases)
        balance_after: Portfolio value (cash + holdings) after the event
        cash_after: Cash balance after the event
        price: Trade price, if the event is a trade
        shares: Shares bought, sold, received or reinvested
        dividend_per_share: Cash dividend per share for DIVIDEND_CASH events
        fee: Brokerage fee charged
        tax: Transaction tax charged
    """
    date: date
    type: TransactionType
    amount: Decimal
    balance_after: Decimal
    cash_after: Decimal
    price: Optional[Decimal] = None
    shares: Optional[int] = None
    dividend_per_share: Optional[Decimal] = None
    fee: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")


@dataclass(frozen=True)
class EquityPoint:
    """Portfolio value at the close of a trading day."""
    date: date
    value: Decimal


@dataclass
class SimulationResult:
    """
    Outcome of one simulation run.

    Attributes:
        symbol: Simulated symbol
        initial_price: Entry price (first bar open)
        final_price: Exit price (last bar close)
        initial_shares: Shares bought on entry
        final_shares: Shares held before the final sell
        final_market_value: Cash after the final sell
        capital_gains: Total return excluding cash dividends
        total_cash_dividends: Sum of all cash dividend payouts
        total_return: final_market_value - investment_amount
        return_rate: total_return as a percentage of the investment
        max_drawdown: Worst peak-to-trough decline in percent (<= 0)
        equity_curve: One point per input price bar
        events: Transaction ledger
    """
    symbol: str
    initial_price: Decimal
    final_price: Decimal
    initial_shares: int
    final_shares: int
    final_market_value: Decimal
    capital_gains: Decimal
    total_cash_dividends: Decimal
    total_return: Decimal
    return_rate: Decimal
    max_drawdown: Decimal
    equity_curve: list[EquityPoint] = field(default_factory=list)
    events: list[TransactionEvent] = field(default_factory=list)


@dataclass(frozen=True)
class BenchmarkSummary:
    """Headline numbers of the benchmark run."""
    symbol: str
    total_return: Decimal
    return_rate: Decimal


@dataclass
class BacktestReport:
    """
    Composed result of a backtest: target run plus optional benchmark.

    Attributes:
        run_id: Identifier assigned by the caller
        created_at: Timestamp assigned by the caller
        config: Configuration used for both runs
        result: Target symbol simulation result
        benchmark: Benchmark summary, absent when the target is the
            benchmark or the benchmark run failed
    """
    run_id: str
    created_at: datetime
    config: BacktestConfig
    result: SimulationResult
    benchmark: Optional[BenchmarkSummary] = None

    @property
    def excess_return_rate(self) -> Optional[Decimal]:
        """Target return rate minus benchmark return rate."""
        if self.benchmark is None:
            return None
        return self.result.return_rate - self.benchmark.return_rate


@dataclass
class DecisionLogEntry:
    """
    Entry for the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        run_id: Backtest run involved (if applicable)
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    run_id: Optional[str]
    details: dict

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        run_id: Optional[str],
        details: dict,
    ) -> "DecisionLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            run_id=run_id,
            details=details,
        )
