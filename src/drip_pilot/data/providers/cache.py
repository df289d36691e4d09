"""
Caching layer for data providers.

Provides file-based caching for market data to ensure:
- Reproducibility across backtest runs
- Reduced API calls to data providers
- Faster subsequent runs
"""

import hashlib
import json
import logging
import shutil
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pandas as pd

from drip_pilot.models import DividendEvent, PriceBar
from drip_pilot.data.providers.base import DataProvider


logger = logging.getLogger(__name__)

PRICE_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class FileCache:
    """
    File-based cache for market data.

    Price bars are stored as Parquet, dividends as JSON, one file per
    symbol and date range.
    """

    def __init__(self, cache_dir: str | Path = "data/cache"):
        """
        Initialize the file cache.

        Args:
            cache_dir: Directory to store cached data
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        # Subdirectories for different data types
        self.prices_dir = self.cache_dir / "prices"
        self.dividends_dir = self.cache_dir / "dividends"
        self.prices_dir.mkdir(exist_ok=True)
        self.dividends_dir.mkdir(exist_ok=True)

    def _get_cache_key(self, symbol: str, start_date: date, end_date: date) -> str:
        """Generate a cache key for a request."""
        key_str = f"{symbol.strip().upper()}_{start_date}_{end_date}"
        return hashlib.md5(key_str.encode()).hexdigest()[:12]

    def get_price_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> Optional[list[PriceBar]]:
        """
        Get cached price bars if available.

        Returns:
            Cached bars or None if not cached
        """
        cache_file = self.prices_dir / f"prices_{self._get_cache_key(symbol, start_date, end_date)}.parquet"
        if not cache_file.exists():
            return None

        try:
            df = pd.read_parquet(cache_file)
        except (OSError, ValueError, ImportError) as e:
            # Cache corrupted, will re-fetch
            logger.warning("Ignoring unreadable price cache %s: %s", cache_file, e)
            return None

        return [
            PriceBar(
                date=date.fromisoformat(str(row["date"])),
                open=Decimal(str(row["open"])),
                high=Decimal(str(row["high"])),
                low=Decimal(str(row["low"])),
                close=Decimal(str(row["close"])),
                volume=int(row["volume"]),
            )
            for _, row in df.iterrows()
        ]

    def save_price_bars(
        self,
        bars: list[PriceBar],
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> None:
        """
        Save price bars to cache.

        Prices are stored as strings so Decimal values survive the round trip.
        """
        cache_file = self.prices_dir / f"prices_{self._get_cache_key(symbol, start_date, end_date)}.parquet"
        df = pd.DataFrame(
            [
                {
                    "date": bar.date.isoformat(),
                    "open": str(bar.open),
                    "high": str(bar.high),
                    "low": str(bar.low),
                    "close": str(bar.close),
                    "volume": bar.volume,
                }
                for bar in bars
            ],
            columns=PRICE_COLUMNS,
        )

        try:
            df.to_parquet(cache_file, index=False)
        except (OSError, ValueError, ImportError) as e:
            # Don't fail on cache write errors
            logger.warning("Could not write price cache %s: %s", cache_file, e)

    def get_dividends(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> Optional[list[DividendEvent]]:
        """
        Get cached dividends if available.

        Returns:
            Cached dividend events or None if not cached
        """
        cache_file = self.dividends_dir / f"dividends_{self._get_cache_key(symbol, start_date, end_date)}.json"
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, "r") as f:
                records = json.load(f)
            return [
                DividendEvent(
                    date=date.fromisoformat(r["date"]),
                    cash_per_share=Decimal(r["cash_per_share"]),
                    stock_ratio_per_10=Decimal(r["stock_ratio_per_10"]),
                )
                for r in records
            ]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable dividend cache %s: %s", cache_file, e)
            return None

    def save_dividends(
        self,
        dividends: list[DividendEvent],
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> None:
        """Save dividend events to cache."""
        cache_file = self.dividends_dir / f"dividends_{self._get_cache_key(symbol, start_date, end_date)}.json"
        records = [
            {
                "date": d.date.isoformat(),
                "cash_per_share": str(d.cash_per_share),
                "stock_ratio_per_10": str(d.stock_ratio_per_10),
            }
            for d in dividends
        ]

        try:
            with open(cache_file, "w") as f:
                json.dump(records, f, indent=2)
        except OSError as e:
            logger.warning("Could not write dividend cache %s: %s", cache_file, e)

    def clear(self) -> None:
        """Clear all cached data."""
        for subdir in [self.prices_dir, self.dividends_dir]:
            if subdir.exists():
                shutil.rmtree(subdir)
                subdir.mkdir(exist_ok=True)


class CachedDataProvider(DataProvider):
    """
    Wrapper that adds caching to any DataProvider.

    Checks cache before calling underlying provider,
    and saves results to cache after fetching.
    """

    def __init__(
        self,
        provider: DataProvider,
        cache: Optional[FileCache] = None,
    ):
        """
        Initialize cached provider.

        Args:
            provider: Underlying data provider
            cache: File cache instance (creates default if None)
        """
        self._provider = provider
        self._cache = cache or FileCache()

    @property
    def name(self) -> str:
        return f"Cached({self._provider.name})"

    def get_price_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[PriceBar]:
        """
        Get price bars with caching.

        Empty results are not cached so a later run can retry the fetch.
        """
        cached = self._cache.get_price_bars(symbol, start_date, end_date)
        if cached is not None:
            return cached

        logger.debug("Price cache miss for %s %s..%s", symbol, start_date, end_date)
        bars = self._provider.get_price_bars(symbol, start_date, end_date)
        if bars:
            self._cache.save_price_bars(bars, symbol, start_date, end_date)

        return bars

    def get_dividends(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        """Get dividends with caching."""
        cached = self._cache.get_dividends(symbol, start_date, end_date)
        if cached is not None:
            return cached

        dividends = self._provider.get_dividends(symbol, start_date, end_date)
        self._cache.save_dividends(dividends, symbol, start_date, end_date)

        return dividends
