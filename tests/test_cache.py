"""
Tests for the file cache and cached provider wrapper.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import make_bars
from drip_pilot.data.providers.cache import CachedDataProvider, FileCache
from drip_pilot.models import DividendEvent


START = date(2024, 1, 2)
END = date(2024, 1, 31)


@pytest.fixture
def cache(tmp_path) -> FileCache:
    return FileCache(tmp_path / "cache")


class TestFileCache:
    """Tests for FileCache."""

    def test_miss_returns_none(self, cache):
        assert cache.get_price_bars("2330", START, END) is None
        assert cache.get_dividends("2330", START, END) is None

    def test_price_bars_preserve_decimals(self, cache):
        bars = make_bars(START, ["593.5", "586.25"])
        cache.save_price_bars(bars, "2330", START, END)

        loaded = cache.get_price_bars("2330", START, END)

        assert loaded == bars

    def test_dividends_preserved(self, cache):
        dividends = [
            DividendEvent(date(2024, 1, 17), cash_per_share=Decimal("3.5")),
            DividendEvent(date(2024, 1, 20), stock_ratio_per_10=Decimal("0.5")),
        ]
        cache.save_dividends(dividends, "2330", START, END)

        assert cache.get_dividends("2330", START, END) == dividends

    def test_key_depends_on_range(self, cache):
        cache.save_price_bars(make_bars(START, ["1"]), "2330", START, END)

        assert cache.get_price_bars("2330", START, date(2024, 2, 1)) is None
        assert cache.get_price_bars("2317", START, END) is None

    def test_corrupt_dividend_file_ignored(self, cache):
        cache.save_dividends([], "2330", START, END)
        for path in cache.dividends_dir.iterdir():
            path.write_text("{not json")

        assert cache.get_dividends("2330", START, END) is None

    def test_clear(self, cache):
        cache.save_price_bars(make_bars(START, ["1"]), "2330", START, END)
        cache.clear()

        assert cache.get_price_bars("2330", START, END) is None


class TestCachedDataProvider:
    """Tests for CachedDataProvider."""

    def test_fetches_once(self, cache):
        inner = MagicMock()
        inner.name = "Inner"
        inner.get_price_bars.return_value = make_bars(START, ["100", "101"])
        provider = CachedDataProvider(inner, cache)

        first = provider.get_price_bars("2330", START, END)
        second = provider.get_price_bars("2330", START, END)

        assert first == second
        assert inner.get_price_bars.call_count == 1
        assert provider.name == "Cached(Inner)"

    def test_empty_bars_not_cached(self, cache):
        inner = MagicMock()
        inner.get_price_bars.return_value = []
        provider = CachedDataProvider(inner, cache)

        provider.get_price_bars("2330", START, END)
        provider.get_price_bars("2330", START, END)

        assert inner.get_price_bars.call_count == 2

    def test_empty_dividends_cached(self, cache):
        inner = MagicMock()
        inner.get_dividends.return_value = []
        provider = CachedDataProvider(inner, cache)

        assert provider.get_dividends("2330", START, END) == []
        assert provider.get_dividends("2330", START, END) == []
        assert inner.get_dividends.call_count == 1
