"""
Core simulation engine for lump-sum dividend backtests.

Steps a single position through a daily price series, applying splits,
stock and cash dividends (with optional reinvestment), brokerage fees and
transaction tax, and tracks the equity curve and maximum drawdown.

Portfolio state is an immutable value threaded through pure per-day
transitions; the engine itself holds only the fee schedule.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional, Sequence

from drip_pilot.models import (
    BacktestConfig,
    DividendEvent,
    EquityPoint,
    FeeSchedule,
    PriceBar,
    SimulationResult,
    SplitEvent,
    TransactionEvent,
    TransactionType,
)


ZERO = Decimal("0")
TEN = Decimal("10")
HUNDRED = Decimal("100")


class SimulationError(Exception):
    """Raised when a simulation cannot be run."""
    pass


class EmptyPriceSeriesError(SimulationError):
    """Raised when there are no price bars to simulate over."""
    pass


@dataclass(frozen=True)
class PortfolioState:
    """Run-local portfolio state. Never shared between runs."""
    cash: Decimal
    shares: int = 0
    cash_dividends: Decimal = ZERO
    peak_equity: Optional[Decimal] = None
    max_drawdown: Decimal = ZERO
    dividend_index: int = 0
    applied_splits: frozenset[date] = field(default_factory=frozenset)

    def equity(self, price: Decimal) -> Decimal:
        """Cash plus holdings valued at the given price."""
        return self.cash + self.shares * price


def _floor(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_FLOOR)


def calculate_fee(
    trade_value: Decimal,
    shares: int,
    fees: FeeSchedule,
    fee_discount: Decimal,
) -> Decimal:
    """
    Brokerage fee for a trade.

    fee = floor(trade_value * fee_rate * fee_discount / 10), raised to the
    minimum fee when the trade has shares. Zero-share trades are free.

    Args:
        trade_value: Shares times price
        shares: Number of shares traded
        fees: Fee schedule
        fee_discount: Broker discount on a scale of 10

    Returns:
        Whole-unit fee
    """
    if shares <= 0:
        return ZERO
    fee = _floor(trade_value * fees.fee_rate * (fee_discount / TEN))
    return max(fee, fees.min_fee)


def calculate_tax(proceeds: Decimal, fees: FeeSchedule) -> Decimal:
    """Transaction tax on sell proceeds, floored to whole units."""
    return _floor(proceeds * fees.tax_rate)


class SimulationEngine:
    """
    Day-stepped lump-sum simulation.

    Usage:
        engine = SimulationEngine()
        result = engine.run(bars, dividends, splits, config)
    """

    def __init__(self, fees: Optional[FeeSchedule] = None):
        """
        Initialize simulation engine.

        Args:
            fees: Fee and tax schedule (exchange defaults if None)
        """
        self.fees = fees or FeeSchedule()

    def run(
        self,
        price_bars: Sequence[PriceBar],
        dividends: Sequence[DividendEvent],
        splits: Sequence[SplitEvent],
        config: BacktestConfig,
    ) -> SimulationResult:
        """
        Run one full simulation.

        Args:
            price_bars: Daily bars for the symbol and date range
            dividends: Dividend records for the symbol and date range
            splits: Forward split events for the symbol and date range
            config: Backtest configuration

        Returns:
            SimulationResult with ledger, equity curve and summary

        Raises:
            EmptyPriceSeriesError: If price_bars is empty
        """
        if not price_bars:
            raise EmptyPriceSeriesError(
                f"No price data for {config.symbol} between "
                f"{config.start_date} and {config.end_date}"
            )

        bars = sorted(price_bars, key=lambda b: b.date)
        queue = sorted(dividends, key=lambda d: d.date)
        ordered_splits = sorted(splits, key=lambda s: s.effective_date)

        events: list[TransactionEvent] = []
        curve: list[EquityPoint] = []

        # Splits dated before the first bar belong to an earlier period
        state = PortfolioState(
            cash=config.investment_amount,
            applied_splits=frozenset(
                s.effective_date for s in ordered_splits if s.effective_date < bars[0].date
            ),
        )
        state, entry_events = self.open_position(state, bars[0], config)
        events.extend(entry_events)
        initial_shares = state.shares

        for bar in bars:
            state, day_events, point = self.step(state, bar, queue, ordered_splits, config)
            events.extend(day_events)
            curve.append(point)

        final_shares = state.shares
        state, exit_events = self.close_position(state, bars[-1], config)
        events.extend(exit_events)

        final_cash = state.cash
        total_return = final_cash - config.investment_amount

        return SimulationResult(
            symbol=config.symbol,
            initial_price=bars[0].open,
            final_price=bars[-1].close,
            initial_shares=initial_shares,
            final_shares=final_shares,
            final_market_value=final_cash,
            capital_gains=total_return - state.cash_dividends,
            total_cash_dividends=state.cash_dividends,
            total_return=total_return,
            return_rate=total_return / config.investment_amount * HUNDRED,
            max_drawdown=state.max_drawdown.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            equity_curve=curve,
            events=events,
        )

    def step(
        self,
        state: PortfolioState,
        bar: PriceBar,
        dividends: Sequence[DividendEvent],
        splits: Sequence[SplitEvent],
        config: BacktestConfig,
    ) -> tuple[PortfolioState, list[TransactionEvent], EquityPoint]:
        """
        Advance the portfolio by one trading day.

        Order is fixed: splits, then queued dividends, then the equity mark.

        Args:
            state: State at the end of the previous day
            bar: Today's price bar
            dividends: Full dividend queue in date order
            splits: Split events in date order
            config: Backtest configuration

        Returns:
            Tuple of (new state, events logged today, equity point)
        """
        state, split_events = self.apply_splits(state, bar, splits)
        state, dividend_events = self.apply_dividends(state, bar, dividends, config)
        state, point = self.mark_to_market(state, bar)
        return state, split_events + dividend_events, point

    def open_position(
        self,
        state: PortfolioState,
        bar: PriceBar,
        config: BacktestConfig,
    ) -> tuple[PortfolioState, list[TransactionEvent]]:
        """
        Buy as many whole shares as the cash allows at the first open.

        Leaves the state untouched (all cash) if not even one share is
        affordable after fees.
        """
        price = bar.open
        if price <= 0:
            return state, []

        fee_multiplier = Decimal("1") + self.fees.fee_rate * (config.fee_discount / TEN)
        shares = int(_floor(state.cash / (price * fee_multiplier)))
        cost = shares * price
        fee = calculate_fee(cost, shares, self.fees, config.fee_discount)

        if shares <= 0 or cost + fee > state.cash:
            return state, []

        state = replace(state, cash=state.cash - cost - fee, shares=state.shares + shares)
        event = TransactionEvent(
            date=bar.date,
            type=TransactionType.BUY,
            price=price,
            shares=shares,
            amount=-(cost + fee),
            balance_after=state.equity(price),
            cash_after=state.cash,
            fee=fee,
        )
        return state, [event]

    def apply_splits(
        self,
        state: PortfolioState,
        bar: PriceBar,
        splits: Sequence[SplitEvent],
    ) -> tuple[PortfolioState, list[TransactionEvent]]:
        """
        Apply splits that have become effective by this trading day.

        A split whose effective date falls on a non-trading day is applied
        on the next bar. Each effective date is applied once.
        """
        events = []
        for split in splits:
            if split.effective_date > bar.date or split.effective_date in state.applied_splits:
                continue

            shares_before = state.shares
            shares_after = int(_floor(shares_before * split.share_multiplier))
            state = replace(
                state,
                shares=shares_after,
                applied_splits=state.applied_splits | {split.effective_date},
            )
            events.append(
                TransactionEvent(
                    date=bar.date,
                    type=TransactionType.SPLIT,
                    shares=shares_after - shares_before,
                    amount=ZERO,
                    balance_after=state.equity(bar.close),
                    cash_after=state.cash,
                )
            )
        return state, events

    def apply_dividends(
        self,
        state: PortfolioState,
        bar: PriceBar,
        dividends: Sequence[DividendEvent],
        config: BacktestConfig,
    ) -> tuple[PortfolioState, list[TransactionEvent]]:
        """
        Drain every queued dividend dated on or before this trading day.

        Stock dividends are applied before the cash component of the same
        record, so the cash payout includes the newly received shares.
        """
        events = []
        index = state.dividend_index

        while index < len(dividends) and dividends[index].date <= bar.date:
            dividend = dividends[index]
            index += 1

            if dividend.stock_ratio_per_10 > 0:
                new_shares = int(_floor(state.shares * dividend.stock_ratio_per_10 / TEN))
                if new_shares > 0:
                    state = replace(state, shares=state.shares + new_shares)
                    events.append(
                        TransactionEvent(
                            date=bar.date,
                            type=TransactionType.DIVIDEND_STOCK,
                            shares=new_shares,
                            amount=ZERO,
                            balance_after=state.equity(bar.close),
                            cash_after=state.cash,
                        )
                    )

            if dividend.cash_per_share > 0:
                state, event = self._pay_cash_dividend(state, bar, dividend, config)
                if event is not None:
                    events.append(event)

        return replace(state, dividend_index=index), events

    def _pay_cash_dividend(
        self,
        state: PortfolioState,
        bar: PriceBar,
        dividend: DividendEvent,
        config: BacktestConfig,
    ) -> tuple[PortfolioState, Optional[TransactionEvent]]:
        payout = _floor(state.shares * dividend.cash_per_share)
        if payout <= 0:
            return state, None

        state = replace(state, cash_dividends=state.cash_dividends + payout)
        reinvested = 0
        fee = ZERO
        credited = payout

        if config.use_drip and bar.close > 0:
            shares = int(_floor(payout / bar.close))
            cost = shares * bar.close
            drip_fee = calculate_fee(cost, shares, self.fees, config.fee_discount)
            # No partial reinvestment: either the whole lot fits or none of it
            if shares > 0 and cost + drip_fee <= payout:
                reinvested = shares
                fee = drip_fee
                credited = payout - cost - drip_fee

        state = replace(state, cash=state.cash + credited, shares=state.shares + reinvested)
        event = TransactionEvent(
            date=bar.date,
            type=TransactionType.DIVIDEND_CASH,
            price=bar.close if reinvested else None,
            shares=reinvested,
            dividend_per_share=dividend.cash_per_share,
            amount=payout,
            balance_after=state.equity(bar.close),
            cash_after=state.cash,
            fee=fee,
        )
        return state, event

    def mark_to_market(
        self,
        state: PortfolioState,
        bar: PriceBar,
    ) -> tuple[PortfolioState, EquityPoint]:
        """Value the portfolio at the close and update peak and drawdown."""
        equity = state.equity(bar.close)
        peak = equity if state.peak_equity is None else max(state.peak_equity, equity)

        max_drawdown = state.max_drawdown
        if peak > 0:
            drawdown = (equity - peak) / peak * HUNDRED
            max_drawdown = min(max_drawdown, drawdown)

        state = replace(state, peak_equity=peak, max_drawdown=max_drawdown)
        return state, EquityPoint(date=bar.date, value=equity)

    def close_position(
        self,
        state: PortfolioState,
        bar: PriceBar,
        config: BacktestConfig,
    ) -> tuple[PortfolioState, list[TransactionEvent]]:
        """
        Sell every remaining share at the last close.

        Nothing is logged when no shares are held, or when fees and tax
        would exceed the proceeds plus the cash balance.
        """
        if state.shares <= 0:
            return state, []

        price = bar.close
        proceeds = state.shares * price
        fee = calculate_fee(proceeds, state.shares, self.fees, config.fee_discount)
        tax = calculate_tax(proceeds, self.fees) if config.deduct_tax else ZERO
        net = proceeds - fee - tax
        if state.cash + net < 0:
            return state, []
        sold = state.shares

        state = replace(state, cash=state.cash + net, shares=0)
        event = TransactionEvent(
            date=bar.date,
            type=TransactionType.SELL,
            price=price,
            shares=sold,
            amount=net,
            balance_after=state.cash,
            cash_after=state.cash,
            fee=fee,
            tax=tax,
        )
        return state, [event]


def run_simulation(
    price_bars: Sequence[PriceBar],
    dividends: Sequence[DividendEvent],
    splits: Sequence[SplitEvent],
    config: BacktestConfig,
    fees: Optional[FeeSchedule] = None,
) -> SimulationResult:
    """Convenience wrapper around SimulationEngine.run."""
    return SimulationEngine(fees).run(price_bars, dividends, splits, config)
