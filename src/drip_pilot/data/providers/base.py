"""
Abstract base class for data providers.

Defines the interface that all data providers must implement,
enabling pluggable data sources for backtesting.
"""

from abc import ABC, abstractmethod
from datetime import date

from drip_pilot.models import DividendEvent, PriceBar


class DataProviderError(Exception):
    """Raised when a data provider encounters an error."""
    pass


class DataProvider(ABC):
    """
    Abstract base class for market data providers.

    Implementations must provide methods to fetch:
    - Daily OHLCV bars for a symbol
    - Dividend distributions (cash and stock) for a symbol
    """

    @abstractmethod
    def get_price_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[PriceBar]:
        """
        Fetch daily price bars.

        Args:
            symbol: Exchange symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Bars sorted by date, one per trading day (may be empty)

        Raises:
            DataProviderError: If data cannot be fetched
        """
        pass

    @abstractmethod
    def get_dividends(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        """
        Fetch dividend records.

        Args:
            symbol: Exchange symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Dividend events sorted by date (may be empty)

        Raises:
            DataProviderError: If data cannot be fetched
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this data provider."""
        pass
