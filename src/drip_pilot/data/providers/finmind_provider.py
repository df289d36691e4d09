"""
FinMind data provider implementation.

Uses the FinMind open data API (https://finmindtrade.com/) to fetch
Taiwan stock daily prices and dividend distributions.
"""

import logging
import time
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests

from drip_pilot.config import load_api_keys
from drip_pilot.models import DividendEvent, PriceBar
from drip_pilot.data.providers.base import DataProvider, DataProviderError


logger = logging.getLogger(__name__)


class FinMindProvider(DataProvider):
    """
    Data provider using the FinMind v4 data API.

    Features:
    - Daily OHLCV bars from the TaiwanStockPrice dataset
    - Cash and stock dividends from the TaiwanStockDividend dataset
    - Retries with linear backoff, longer waits when rate limited
    - Optional API token (anonymous access has a lower quota)
    """

    BASE_URL = "https://api.finmindtrade.com/api/v4/data"
    PRICE_DATASET = "TaiwanStockPrice"
    DIVIDEND_DATASET = "TaiwanStockDividend"

    # Rate limit retry settings
    RATE_LIMIT_RETRIES = 3
    RATE_LIMIT_DELAY = 5.0  # seconds

    def __init__(
        self,
        token: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 30.0,
    ):
        """
        Initialize FinMind provider.

        Args:
            token: FinMind API token (defaults to loading from config sources)
            max_retries: Maximum attempts per request
            retry_delay: Base delay between retries (seconds)
            timeout: Per-request timeout (seconds)

        Note:
            Token is loaded from (in priority order):
            1. token parameter
            2. FINMIND_API_TOKEN environment variable
            3. .env file in project root
            4. config/api_keys.yaml
        """
        if token:
            self._token = token
        else:
            self._token = load_api_keys().get("finmind_api_token")

        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "FinMind"

    def get_price_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[PriceBar]:
        """
        Fetch daily bars from TaiwanStockPrice.

        FinMind names the high/low columns `max`/`min` and volume
        `Trading_Volume`. Rows with unparseable values are skipped.
        """
        rows = self._fetch_dataset(self.PRICE_DATASET, symbol, start_date, end_date)

        bars = {}
        for item in rows:
            try:
                bar_date = date.fromisoformat(str(item["date"])[:10])
                bars[bar_date] = PriceBar(
                    date=bar_date,
                    open=_to_decimal(item["open"]),
                    high=_to_decimal(item.get("max", item["open"])),
                    low=_to_decimal(item.get("min", item["open"])),
                    close=_to_decimal(item["close"]),
                    volume=int(item.get("Trading_Volume") or 0),
                )
            except (KeyError, ValueError, TypeError, InvalidOperation):
                continue

        return [bars[d] for d in sorted(bars)]

    def get_dividends(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        """
        Fetch dividends from TaiwanStockDividend.

        StockEarningsDistribution is the stock dividend in NT$ per share at
        NT$10 par, which is the number of new shares per 10 held.
        """
        rows = self._fetch_dataset(self.DIVIDEND_DATASET, symbol, start_date, end_date)

        dividends = []
        for item in rows:
            try:
                dividends.append(
                    DividendEvent(
                        date=date.fromisoformat(str(item["date"])[:10]),
                        cash_per_share=_to_decimal(item.get("CashEarningsDistribution") or 0),
                        stock_ratio_per_10=_to_decimal(item.get("StockEarningsDistribution") or 0),
                    )
                )
            except (KeyError, ValueError, TypeError, InvalidOperation):
                continue

        dividends.sort(key=lambda d: d.date)
        return dividends

    def _fetch_dataset(
        self,
        dataset: str,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[dict[str, Any]]:
        params = {
            "dataset": dataset,
            "data_id": symbol.strip(),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        }
        if self._token:
            params["token"] = self._token

        payload = self._make_request(params)
        data = payload.get("data")
        if not isinstance(data, list):
            return []
        return data

    def _make_request(self, params: dict) -> dict:
        """
        Make an HTTP request to the FinMind API with retry logic.

        Args:
            params: Query parameters

        Returns:
            Parsed JSON response body

        Raises:
            DataProviderError: On request failure
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                response = requests.get(self.BASE_URL, params=params, timeout=self._timeout)

                # Handle rate limiting
                if response.status_code in (402, 429):
                    if attempt < self.RATE_LIMIT_RETRIES - 1:
                        logger.warning(
                            "FinMind rate limit hit for %s, retrying", params.get("data_id")
                        )
                        time.sleep(self.RATE_LIMIT_DELAY * (attempt + 1))
                        continue
                    raise DataProviderError(
                        f"FinMind API rate limit exceeded after {self.RATE_LIMIT_RETRIES} retries"
                    )

                response.raise_for_status()

                data = response.json()
                if not isinstance(data, dict):
                    raise DataProviderError("Unexpected FinMind response format")
                if data.get("status") not in (None, 200):
                    raise DataProviderError(f"FinMind API error: {data.get('msg')}")

                return data

            except requests.exceptions.Timeout:
                last_error = "Request timeout"
            except ValueError as e:
                raise DataProviderError(f"Invalid JSON response from FinMind API: {e}")
            except requests.exceptions.RequestException as e:
                last_error = str(e)

            logger.debug("FinMind request attempt %d failed: %s", attempt + 1, last_error)
            if attempt < self._max_retries - 1:
                time.sleep(self._retry_delay * (attempt + 1))

        raise DataProviderError(
            f"Failed to fetch data from FinMind after {self._max_retries} attempts: {last_error}"
        )


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def get_finmind_provider(
    use_cache: bool = True,
    cache_dir: str = "data/cache",
    token: Optional[str] = None,
) -> DataProvider:
    """
    Get a FinMind data provider instance.

    Args:
        use_cache: Whether to wrap with caching layer
        cache_dir: Directory for cache files
        token: FinMind API token (defaults to config sources)

    Returns:
        DataProvider instance (FinMind with optional caching)
    """
    from drip_pilot.data.providers.cache import CachedDataProvider, FileCache

    provider = FinMindProvider(token=token)

    if use_cache:
        return CachedDataProvider(provider, FileCache(cache_dir))

    return provider
