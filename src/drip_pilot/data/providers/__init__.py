"""
Data providers for daily prices and dividends.

Provides a pluggable interface for fetching historical price bars and
dividend records, with built-in caching for reproducibility.
"""

from drip_pilot.data.providers.base import DataProvider, DataProviderError
from drip_pilot.data.providers.cache import CachedDataProvider, FileCache
from drip_pilot.data.providers.csv_provider import CsvDataProvider
from drip_pilot.data.providers.finmind_provider import FinMindProvider, get_finmind_provider

__all__ = [
    "DataProvider",
    "DataProviderError",
    "CachedDataProvider",
    "FileCache",
    "CsvDataProvider",
    "FinMindProvider",
    "get_finmind_provider",
]
