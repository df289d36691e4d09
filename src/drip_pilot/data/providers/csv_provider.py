"""
Offline data provider backed by local CSV/Parquet files.
"""

from datetime import date
from pathlib import Path
from typing import Optional

from drip_pilot.models import DividendEvent, PriceBar
from drip_pilot.data.loaders import DataLoadError, load_dividends, load_price_bars
from drip_pilot.data.providers.base import DataProvider, DataProviderError


class CsvDataProvider(DataProvider):
    """
    Serves price bars and dividends from files on disk.

    Files may hold several symbols if they carry a `symbol` column.
    A file without one holds only the provider's own symbol, and asking
    it for any other symbol raises DataProviderError.
    A missing dividends file means no dividends.
    """

    def __init__(
        self,
        symbol: str,
        prices_path: str | Path,
        dividends_path: Optional[str | Path] = None,
    ):
        """
        Args:
            symbol: Symbol held by files without a symbol column
            prices_path: Price bar file
            dividends_path: Optional dividend file
        """
        self._symbol = symbol.strip()
        self._prices_path = Path(prices_path)
        self._dividends_path = Path(dividends_path) if dividends_path else None

    @property
    def name(self) -> str:
        return f"CSV({self._prices_path.name})"

    def get_price_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[PriceBar]:
        try:
            bars = load_price_bars(self._prices_path, symbol=symbol, file_symbol=self._symbol)
        except DataLoadError as e:
            raise DataProviderError(str(e)) from e
        return [b for b in bars if start_date <= b.date <= end_date]

    def get_dividends(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        if self._dividends_path is None:
            return []
        try:
            dividends = load_dividends(
                self._dividends_path, symbol=symbol, file_symbol=self._symbol
            )
        except DataLoadError as e:
            raise DataProviderError(str(e)) from e
        return [d for d in dividends if start_date <= d.date <= end_date]
