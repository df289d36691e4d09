"""
Data ingestion module for the DRIP backtest system.

Provides loading of daily price bars and dividend records from
CSV/Parquet files, ledger output, and the corporate action provider.
"""

from drip_pilot.data.loaders import (
    DataLoadError,
    load_price_bars,
    load_dividends,
    save_events,
    save_equity_curve,
    save_price_bars,
)
from drip_pilot.data.schemas import (
    PRICE_BARS_SCHEMA,
    DIVIDENDS_SCHEMA,
    EVENTS_SCHEMA,
    EQUITY_CURVE_SCHEMA,
)
from drip_pilot.data.corporate_actions import (
    CorporateActionProvider,
    STATIC_SPLITS,
    adjust_price_bars,
    derive_splits,
)

__all__ = [
    "DataLoadError",
    "load_price_bars",
    "load_dividends",
    "save_events",
    "save_equity_curve",
    "save_price_bars",
    "PRICE_BARS_SCHEMA",
    "DIVIDENDS_SCHEMA",
    "EVENTS_SCHEMA",
    "EQUITY_CURVE_SCHEMA",
    "CorporateActionProvider",
    "STATIC_SPLITS",
    "adjust_price_bars",
    "derive_splits",
]
