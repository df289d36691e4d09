"""
Pytest fixtures for the DRIP backtest system tests.

Provides common test data and utilities used across test modules.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pytest

from drip_pilot.data.providers.base import DataProvider, DataProviderError
from drip_pilot.models import (
    BacktestConfig,
    DividendEvent,
    PriceBar,
)


def make_bar(day: date, price: str, close: Optional[str] = None) -> PriceBar:
    """Bar whose open/high/low equal `price` and close defaults to it."""
    open_price = Decimal(price)
    close_price = Decimal(close) if close is not None else open_price
    return PriceBar(
        date=day,
        open=open_price,
        high=max(open_price, close_price),
        low=min(open_price, close_price),
        close=close_price,
        volume=1000,
    )


def make_bars(start: date, closes: list[str]) -> list[PriceBar]:
    """Consecutive calendar-day bars with open == close."""
    return [make_bar(start + timedelta(days=i), c) for i, c in enumerate(closes)]


class FakeProvider(DataProvider):
    """In-memory provider keyed by symbol; unknown symbols raise."""

    def __init__(
        self,
        bars: dict[str, list[PriceBar]],
        dividends: Optional[dict[str, list[DividendEvent]]] = None,
    ):
        self.bars = bars
        self.dividends = dividends or {}
        self.requested: list[str] = []

    @property
    def name(self) -> str:
        return "Fake"

    def get_price_bars(self, symbol, start_date, end_date):
        self.requested.append(symbol)
        if symbol not in self.bars:
            raise DataProviderError(f"No data for {symbol}")
        return [b for b in self.bars[symbol] if start_date <= b.date <= end_date]

    def get_dividends(self, symbol, start_date, end_date):
        return [
            d for d in self.dividends.get(symbol, [])
            if start_date <= d.date <= end_date
        ]


@pytest.fixture
def start_day() -> date:
    return date(2024, 1, 2)


@pytest.fixture
def backtest_config(start_day) -> BacktestConfig:
    """Full-rate fees, no tax, DRIP on, 100,000 invested."""
    return BacktestConfig(
        symbol="2330",
        start_date=start_day,
        end_date=start_day + timedelta(days=30),
        investment_amount=Decimal("100000"),
        use_drip=True,
        fee_discount=Decimal("10"),
        deduct_tax=False,
    )


@pytest.fixture
def flat_bars(start_day) -> list[PriceBar]:
    """Five bars at a constant price of 100."""
    return make_bars(start_day, ["100"] * 5)


@pytest.fixture
def fake_provider(start_day) -> FakeProvider:
    """Target 2330 rises, benchmark 006208 is flat."""
    return FakeProvider(
        bars={
            "2330": make_bars(start_day, ["100", "105", "110"]),
            "006208": make_bars(start_day, ["50", "50", "50"]),
        },
        dividends={
            "2330": [DividendEvent(date=start_day + timedelta(days=1), cash_per_share=Decimal("2"))],
        },
    )
