"""
Tests for the lump-sum simulation engine.
"""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import make_bar, make_bars
from drip_pilot.models import (
    DividendEvent,
    FeeSchedule,
    SplitEvent,
    TransactionType,
)
from drip_pilot.simulation.engine import (
    EmptyPriceSeriesError,
    PortfolioState,
    SimulationEngine,
    SimulationError,
    calculate_fee,
    calculate_tax,
    run_simulation,
)


def _types(result) -> list[TransactionType]:
    return [e.type for e in result.events]


class TestFeesAndTax:
    """Tests for fee and tax rounding."""

    def test_fee_is_floored(self):
        fee = calculate_fee(Decimal("99800"), 998, FeeSchedule(), Decimal("10"))
        assert fee == Decimal("142")

    def test_minimum_fee_applies(self):
        fee = calculate_fee(Decimal("900"), 9, FeeSchedule(), Decimal("10"))
        assert fee == Decimal("20")

    def test_zero_shares_cost_nothing(self):
        assert calculate_fee(Decimal("0"), 0, FeeSchedule(), Decimal("10")) == Decimal("0")

    def test_discount_scales_fee(self):
        fee = calculate_fee(Decimal("99900"), 999, FeeSchedule(), Decimal("2.8"))
        assert fee == Decimal("39")

    def test_tax_is_floored(self):
        assert calculate_tax(Decimal("99800"), FeeSchedule()) == Decimal("299")


class TestEntryAndExit:
    """Tests for the initial buy and the final sell."""

    def test_single_bar_round_trip(self, backtest_config, start_day):
        result = run_simulation([make_bar(start_day, "100")], [], [], backtest_config)

        assert _types(result) == [TransactionType.BUY, TransactionType.SELL]
        buy, sell = result.events

        assert buy.shares == 998
        assert buy.fee == Decimal("142")
        assert buy.amount == Decimal("-99942")
        assert buy.cash_after == Decimal("58")

        assert sell.shares == 998
        assert sell.fee == Decimal("142")
        assert sell.tax == Decimal("0")
        assert sell.amount == Decimal("99658")
        assert sell.date == start_day

        assert result.initial_shares == 998
        assert result.final_shares == 998
        assert result.final_market_value == Decimal("100000") - 2 * Decimal("142")
        assert result.total_return == Decimal("-284")
        assert result.return_rate == Decimal("-0.284")

    def test_tax_deducted_on_sell(self, backtest_config, start_day):
        config = replace(backtest_config, deduct_tax=True)
        result = run_simulation([make_bar(start_day, "100")], [], [], config)

        sell = result.events[-1]
        assert sell.tax == Decimal("299")
        assert result.final_market_value == Decimal("99417")

    def test_fee_discount_buys_more_shares(self, backtest_config, start_day):
        config = replace(backtest_config, fee_discount=Decimal("2.8"))
        result = run_simulation([make_bar(start_day, "100")], [], [], config)

        assert result.events[0].shares == 999
        assert result.events[0].fee == Decimal("39")

    def test_entry_uses_open_and_exit_uses_close(self, backtest_config, start_day):
        bars = [make_bar(start_day, "100", close="110")]
        result = run_simulation(bars, [], [], backtest_config)

        assert result.initial_price == Decimal("100")
        assert result.final_price == Decimal("110")
        assert result.events[0].price == Decimal("100")
        assert result.events[-1].price == Decimal("110")

    def test_unaffordable_entry_stays_in_cash(self, backtest_config, start_day):
        config = replace(backtest_config, investment_amount=Decimal("50"))
        result = run_simulation(make_bars(start_day, ["100", "120"]), [], [], config)

        assert result.events == []
        assert result.initial_shares == 0
        assert result.final_market_value == Decimal("50")
        assert result.total_return == Decimal("0")
        assert [p.value for p in result.equity_curve] == [Decimal("50"), Decimal("50")]

    def test_fee_exceeding_cash_blocks_entry(self, backtest_config, start_day):
        # One share fits but the minimum fee does not
        config = replace(backtest_config, investment_amount=Decimal("110"))
        result = run_simulation([make_bar(start_day, "100")], [], [], config)

        assert result.events == []
        assert result.final_market_value == Decimal("110")

    def test_non_positive_open_skips_entry(self, backtest_config, start_day):
        bars = [make_bar(start_day, "0", close="100")]
        result = run_simulation(bars, [], [], backtest_config)

        assert TransactionType.BUY not in _types(result)

    def test_empty_price_series_raises(self, backtest_config):
        with pytest.raises(EmptyPriceSeriesError):
            run_simulation([], [], [], backtest_config)

    def test_empty_series_error_is_simulation_error(self):
        assert issubclass(EmptyPriceSeriesError, SimulationError)


class TestDividends:
    """Tests for cash and stock dividends."""

    def test_drip_reinvests_payout(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "100"])
        dividends = [DividendEvent(date=bars[1].date, cash_per_share=Decimal("2.00"))]
        result = run_simulation(bars, dividends, [], backtest_config)

        dividend = result.events[1]
        assert dividend.type == TransactionType.DIVIDEND_CASH
        assert dividend.amount == Decimal("1996")
        assert dividend.shares == 19
        assert dividend.price == Decimal("100")
        assert dividend.fee == Decimal("20")
        assert dividend.dividend_per_share == Decimal("2.00")
        assert dividend.cash_after == Decimal("134")

        assert result.final_shares == 1017
        assert result.total_cash_dividends == Decimal("1996")
        assert result.final_market_value == Decimal("101690")
        assert result.capital_gains == Decimal("-306")

    def test_no_drip_credits_cash(self, backtest_config, start_day):
        config = replace(backtest_config, use_drip=False)
        bars = make_bars(start_day, ["100", "100"])
        dividends = [DividendEvent(date=bars[1].date, cash_per_share=Decimal("2.00"))]
        result = run_simulation(bars, dividends, [], config)

        dividend = result.events[1]
        assert dividend.shares == 0
        assert dividend.price is None
        assert dividend.cash_after == Decimal("2054")
        assert result.final_shares == 998

    def test_unaffordable_drip_falls_back_to_cash(self, backtest_config, start_day):
        # Payout of 109 buys one share at 100 but not the minimum fee on top
        bars = make_bars(start_day, ["100", "100"])
        dividends = [DividendEvent(date=bars[1].date, cash_per_share=Decimal("0.11"))]
        result = run_simulation(bars, dividends, [], backtest_config)

        dividend = result.events[1]
        assert dividend.amount == Decimal("109")
        assert dividend.shares == 0
        assert dividend.fee == Decimal("0")
        assert dividend.cash_after == Decimal("167")
        assert result.final_shares == 998

    def test_dividend_on_non_trading_day_paid_next_bar(self, backtest_config, start_day):
        bars = [make_bar(start_day, "100"), make_bar(start_day + timedelta(days=3), "100")]
        dividends = [DividendEvent(date=start_day + timedelta(days=1), cash_per_share=Decimal("2"))]
        result = run_simulation(bars, dividends, [], backtest_config)

        assert result.events[1].type == TransactionType.DIVIDEND_CASH
        assert result.events[1].date == bars[1].date

    def test_stock_dividend_before_cash_component(self, backtest_config, start_day):
        config = replace(backtest_config, use_drip=False)
        bars = make_bars(start_day, ["100", "100"])
        dividends = [
            DividendEvent(
                date=bars[1].date,
                cash_per_share=Decimal("1"),
                stock_ratio_per_10=Decimal("1"),
            )
        ]
        result = run_simulation(bars, dividends, [], config)

        stock, cash = result.events[1], result.events[2]
        assert stock.type == TransactionType.DIVIDEND_STOCK
        assert stock.shares == 99
        assert stock.amount == Decimal("0")
        assert cash.type == TransactionType.DIVIDEND_CASH
        assert cash.amount == Decimal("1097")
        assert result.final_shares == 1097

    def test_zero_payout_is_not_logged(self, backtest_config, start_day):
        config = replace(backtest_config, investment_amount=Decimal("50"))
        bars = make_bars(start_day, ["100", "100"])
        dividends = [DividendEvent(date=bars[1].date, cash_per_share=Decimal("2"))]
        result = run_simulation(bars, dividends, [], config)

        assert result.events == []
        assert result.total_cash_dividends == Decimal("0")

    def test_each_dividend_applied_once(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "100", "100", "100"])
        dividends = [DividendEvent(date=bars[1].date, cash_per_share=Decimal("1"))]
        result = run_simulation(bars, dividends, [], backtest_config)

        cash_events = [e for e in result.events if e.type == TransactionType.DIVIDEND_CASH]
        assert len(cash_events) == 1


class TestSplits:
    """Tests for forward split application."""

    def test_split_multiplies_shares(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "100", "25", "25"])
        splits = [SplitEvent(effective_date=bars[2].date, share_multiplier=Decimal("4"))]
        result = run_simulation(bars, [], splits, backtest_config)

        split = result.events[1]
        assert split.type == TransactionType.SPLIT
        assert split.shares == 2994
        assert split.amount == Decimal("0")
        assert split.date == bars[2].date

        assert result.final_shares == 3992
        assert result.equity_curve[2].value == Decimal("99858")
        assert result.final_market_value == Decimal("99716")

    def test_split_on_non_trading_day_applied_next_bar(self, backtest_config, start_day):
        bars = [make_bar(start_day, "100"), make_bar(start_day + timedelta(days=2), "25")]
        splits = [
            SplitEvent(effective_date=start_day + timedelta(days=1), share_multiplier=Decimal("4"))
        ]
        result = run_simulation(bars, [], splits, backtest_config)

        split_events = [e for e in result.events if e.type == TransactionType.SPLIT]
        assert len(split_events) == 1
        assert split_events[0].date == bars[1].date

    def test_duplicate_split_dates_applied_once(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "25", "25"])
        split = SplitEvent(effective_date=bars[1].date, share_multiplier=Decimal("4"))
        result = run_simulation(bars, [], [split, split], backtest_config)

        split_events = [e for e in result.events if e.type == TransactionType.SPLIT]
        assert len(split_events) == 1
        assert result.final_shares == 3992

    def test_split_on_first_bar_applied(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "100"])
        splits = [SplitEvent(effective_date=start_day, share_multiplier=Decimal("4"))]
        result = run_simulation(bars, [], splits, backtest_config)

        assert _types(result) == [TransactionType.BUY, TransactionType.SPLIT, TransactionType.SELL]
        split = result.events[1]
        assert split.date == start_day
        assert split.shares == 3 * result.initial_shares
        assert result.final_shares == 4 * result.initial_shares

    def test_split_before_first_bar_ignored(self, backtest_config, start_day):
        bars = make_bars(start_day, ["25", "25"])
        splits = [
            SplitEvent(effective_date=start_day - timedelta(days=5), share_multiplier=Decimal("4"))
        ]
        result = run_simulation(bars, [], splits, backtest_config)

        assert TransactionType.SPLIT not in _types(result)
        assert result.final_shares == result.initial_shares

    def test_split_with_no_shares_still_logged(self, backtest_config, start_day):
        config = replace(backtest_config, investment_amount=Decimal("50"))
        bars = make_bars(start_day, ["100", "25"])
        splits = [SplitEvent(effective_date=bars[1].date, share_multiplier=Decimal("4"))]
        result = run_simulation(bars, [], splits, config)

        assert _types(result) == [TransactionType.SPLIT]
        assert result.events[0].shares == 0


class TestEquityCurve:
    """Tests for the equity curve and drawdown tracking."""

    def test_one_point_per_bar_ascending(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "101", "99", "102", "98"])
        result = run_simulation(list(reversed(bars)), [], [], backtest_config)

        assert len(result.equity_curve) == len(bars)
        dates = [p.date for p in result.equity_curve]
        assert dates == sorted(dates)

    def test_max_drawdown(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "120", "90", "110"])
        result = run_simulation(bars, [], [], backtest_config)

        assert result.max_drawdown == Decimal("-24.99")

    def test_drawdown_never_positive(self, backtest_config, start_day):
        bars = make_bars(start_day, ["100", "110", "120", "130"])
        result = run_simulation(bars, [], [], backtest_config)

        assert result.max_drawdown == Decimal("0")

    def test_cash_never_negative(self, backtest_config, start_day):
        config = replace(backtest_config, deduct_tax=True)
        bars = make_bars(start_day, ["100", "97", "103", "95", "101"])
        dividends = [
            DividendEvent(date=bars[1].date, cash_per_share=Decimal("1.5")),
            DividendEvent(date=bars[3].date, cash_per_share=Decimal("0.8")),
        ]
        result = run_simulation(bars, dividends, [], config)

        for event in result.events:
            assert event.cash_after >= 0

    def test_ledger_dates_non_decreasing(self, backtest_config, start_day):
        config = replace(backtest_config, deduct_tax=True)
        bars = [
            make_bar(start_day, "100"),
            make_bar(start_day + timedelta(days=1), "100"),
            make_bar(start_day + timedelta(days=4), "26"),
            make_bar(start_day + timedelta(days=5), "27"),
        ]
        dividends = [
            DividendEvent(date=start_day + timedelta(days=1), cash_per_share=Decimal("2")),
            DividendEvent(date=start_day + timedelta(days=3), stock_ratio_per_10=Decimal("0.5")),
            DividendEvent(date=start_day + timedelta(days=5), cash_per_share=Decimal("0.5")),
        ]
        splits = [
            SplitEvent(effective_date=start_day + timedelta(days=2), share_multiplier=Decimal("4")),
        ]
        result = run_simulation(bars, dividends, splits, config)

        assert set(_types(result)) == set(TransactionType)
        dates = [e.date for e in result.events]
        assert dates == sorted(dates)
        assert result.events[-1].type == TransactionType.SELL


class TestPortfolioState:
    """Tests for per-step state transitions."""

    def test_step_does_not_mutate_input_state(self, backtest_config, start_day):
        engine = SimulationEngine()
        state = PortfolioState(cash=Decimal("1000"), shares=10)
        bar = make_bar(start_day, "100")

        new_state, events, point = engine.step(state, bar, [], [], backtest_config)

        assert state.peak_equity is None
        assert new_state.peak_equity == Decimal("2000")
        assert events == []
        assert point.value == Decimal("2000")

    def test_equity(self):
        state = PortfolioState(cash=Decimal("10"), shares=3)
        assert state.equity(Decimal("5")) == Decimal("25")

    def test_custom_fee_schedule(self, backtest_config, start_day):
        engine = SimulationEngine(FeeSchedule(min_fee=Decimal("1")))
        config = replace(backtest_config, investment_amount=Decimal("1000"))
        result = engine.run([make_bar(start_day, "100")], [], [], config)

        assert result.events[0].shares == 9
        assert result.events[0].fee == Decimal("1")


def test_runs_are_independent(backtest_config, start_day):
    engine = SimulationEngine()
    bars = make_bars(start_day, ["100", "105"])
    first = engine.run(bars, [], [], backtest_config)
    second = engine.run(bars, [], [], backtest_config)

    assert first.final_market_value == second.final_market_value
    assert first.events == second.events
