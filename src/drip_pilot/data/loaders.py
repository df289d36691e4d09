"""
Data loading and saving functions for CSV/Parquet files.

Handles ingestion of daily price bars and dividend records, as well as
output of the transaction ledger and equity curve.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional

import pandas as pd

from drip_pilot.models import DividendEvent, EquityPoint, PriceBar, TransactionEvent
from drip_pilot.data.schemas import (
    DIVIDENDS_SCHEMA,
    EVENTS_SCHEMA,
    EQUITY_CURVE_SCHEMA,
    PRICE_BARS_SCHEMA,
    FileSchema,
)


class DataLoadError(Exception):
    """Raised when data cannot be loaded or is invalid."""
    pass


def load_price_bars(
    file_path: str | Path,
    symbol: Optional[str] = None,
    file_symbol: Optional[str] = None,
) -> list[PriceBar]:
    """
    Load daily price bars from a CSV or Parquet file.

    Args:
        file_path: File with columns date, open, close and optionally
            high, low, volume, symbol
        symbol: If provided and the file has a symbol column, keep only
            rows for this symbol
        file_symbol: Symbol held by a file without a symbol column. If
            given, requesting a different symbol from such a file fails

    Returns:
        Bars sorted by date; duplicate dates keep the last row

    Raises:
        DataLoadError: If file cannot be loaded or is invalid
    """
    df = _load_table(Path(file_path), PRICE_BARS_SCHEMA)
    df = _filter_symbol(df, symbol, file_symbol, file_path)

    try:
        df["date"] = pd.to_datetime(df["date"]).dt.date
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Invalid date values in {file_path}: {e}")

    # Missing high/low fall back to the open/close range
    if "high" not in df.columns:
        df["high"] = df[["open", "close"]].max(axis=1)
    if "low" not in df.columns:
        df["low"] = df[["open", "close"]].min(axis=1)
    if "volume" not in df.columns:
        df["volume"] = 0

    df = df.dropna(subset=["open", "close"])
    df = df.drop_duplicates(subset=["date"], keep="last").sort_values("date")

    bars = []
    for _, row in df.iterrows():
        bars.append(
            PriceBar(
                date=row["date"],
                open=Decimal(str(row["open"])),
                high=Decimal(str(row["high"])),
                low=Decimal(str(row["low"])),
                close=Decimal(str(row["close"])),
                volume=int(row["volume"]) if pd.notna(row["volume"]) else 0,
            )
        )

    return bars


def load_dividends(
    file_path: str | Path,
    symbol: Optional[str] = None,
    file_symbol: Optional[str] = None,
) -> list[DividendEvent]:
    """
    Load dividend records from a CSV or Parquet file.

    Args:
        file_path: File with columns date, cash_dividend, stock_dividend
            (stock_dividend is units per 10 held shares)
        symbol: Optional symbol filter, as for load_price_bars
        file_symbol: As for load_price_bars

    Returns:
        Dividend events sorted by date

    Raises:
        DataLoadError: If file cannot be loaded or is invalid
    """
    df = _load_table(Path(file_path), DIVIDENDS_SCHEMA)
    df = _filter_symbol(df, symbol, file_symbol, file_path)

    try:
        df["date"] = pd.to_datetime(df["date"]).dt.date
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Invalid date values in {file_path}: {e}")

    for column in ("cash_dividend", "stock_dividend"):
        if column not in df.columns:
            df[column] = 0.0
        df[column] = df[column].fillna(0.0)

    if (df["cash_dividend"] < 0).any() or (df["stock_dividend"] < 0).any():
        raise DataLoadError(f"Negative dividend values in {file_path}")

    dividends = [
        DividendEvent(
            date=row["date"],
            cash_per_share=Decimal(str(row["cash_dividend"])),
            stock_ratio_per_10=Decimal(str(row["stock_dividend"])),
        )
        for _, row in df.sort_values("date", kind="stable").iterrows()
    ]

    return dividends


def save_events(
    events: list[TransactionEvent],
    output_path: str | Path,
) -> Path:
    """
    Save the transaction ledger to CSV.

    Args:
        events: Ledger entries in order
        output_path: Path for output file

    Returns:
        Path to saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for event in events:
        records.append({
            "date": event.date.isoformat(),
            "type": event.type.value,
            "price": float(event.price) if event.price is not None else None,
            "shares": event.shares,
            "dividend_per_share": (
                float(event.dividend_per_share)
                if event.dividend_per_share is not None else None
            ),
            "amount": float(event.amount),
            "fee": float(event.fee),
            "tax": float(event.tax),
            "cash_after": float(event.cash_after),
            "balance_after": float(event.balance_after),
        })

    df = pd.DataFrame(records, columns=EVENTS_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_equity_curve(
    points: list[EquityPoint],
    output_path: str | Path,
) -> Path:
    """
    Save the daily equity curve to CSV.

    Returns:
        Path to saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(
        [{"date": p.date.isoformat(), "value": float(p.value)} for p in points],
        columns=EQUITY_CURVE_SCHEMA.all_columns,
    )
    df.to_csv(output_path, index=False)

    return output_path


def save_price_bars(
    bars: list[PriceBar],
    output_path: str | Path,
) -> Path:
    """
    Save price bars to CSV using the input column layout.

    Returns:
        Path to saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(
        [
            {
                "date": bar.date.isoformat(),
                "open": float(bar.open),
                "high": float(bar.high),
                "low": float(bar.low),
                "close": float(bar.close),
                "volume": bar.volume,
            }
            for bar in bars
        ],
        columns=["date", "open", "high", "low", "close", "volume"],
    )
    df.to_csv(output_path, index=False)

    return output_path


def _filter_symbol(
    df: pd.DataFrame,
    symbol: Optional[str],
    file_symbol: Optional[str],
    file_path: str | Path,
) -> pd.DataFrame:
    if symbol is None:
        return df.copy()
    if "symbol" not in df.columns:
        if file_symbol is not None and symbol.strip() != file_symbol.strip():
            raise DataLoadError(
                f"File {file_path} has no symbol column and holds {file_symbol}, not {symbol}"
            )
        return df.copy()
    return df[df["symbol"].astype(str).str.strip() == symbol.strip()].copy()


def _load_table(file_path: Path, schema: FileSchema) -> pd.DataFrame:
    """
    Load a CSV or Parquet file and validate against schema.

    Symbol columns are read as strings so codes like 0050 keep their
    leading zeros.

    Raises:
        DataLoadError: If file cannot be loaded or has missing columns
    """
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    if file_path.suffix.lower() == ".parquet":
        try:
            df = pd.read_parquet(file_path)
        except Exception as e:
            raise DataLoadError(f"Failed to load parquet file {file_path}: {e}")
    else:
        try:
            df = pd.read_csv(file_path, dtype={"symbol": str})
        except Exception as e:
            raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    is_valid, missing = schema.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    return df
