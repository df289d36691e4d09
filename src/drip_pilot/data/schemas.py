"""
Data schemas for CSV/Parquet file validation.

Defines expected columns and data types for all input and output files.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    dtype: str  # pandas dtype string
    required: bool = True
    nullable: bool = False


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Args:
            df_columns: List of column names from the dataframe

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


# Daily Price Bar Schema (input)
PRICE_BARS_SCHEMA = FileSchema(
    name="price_bars",
    description="Daily OHLCV bars, optionally for several symbols",
    columns=[
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="open", dtype="float64", required=True),
        ColumnSchema(name="high", dtype="float64", required=False),
        ColumnSchema(name="low", dtype="float64", required=False),
        ColumnSchema(name="close", dtype="float64", required=True),
        ColumnSchema(name="volume", dtype="int64", required=False),
        ColumnSchema(name="symbol", dtype="str", required=False),
    ],
)

# Dividend Schema (input)
DIVIDENDS_SCHEMA = FileSchema(
    name="dividends",
    description="Cash and stock dividend distributions",
    columns=[
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="cash_dividend", dtype="float64", required=False),
        ColumnSchema(name="stock_dividend", dtype="float64", required=False),
        ColumnSchema(name="symbol", dtype="str", required=False),
    ],
)

# Transaction Ledger Schema (output)
EVENTS_SCHEMA = FileSchema(
    name="events",
    description="Transaction ledger of a simulation run",
    columns=[
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="type", dtype="str", required=True),
        ColumnSchema(name="price", dtype="float64", required=False, nullable=True),
        ColumnSchema(name="shares", dtype="int64", required=False, nullable=True),
        ColumnSchema(name="dividend_per_share", dtype="float64", required=False, nullable=True),
        ColumnSchema(name="amount", dtype="float64", required=True),
        ColumnSchema(name="fee", dtype="float64", required=True),
        ColumnSchema(name="tax", dtype="float64", required=True),
        ColumnSchema(name="cash_after", dtype="float64", required=True),
        ColumnSchema(name="balance_after", dtype="float64", required=True),
    ],
)

# Equity Curve Schema (output)
EQUITY_CURVE_SCHEMA = FileSchema(
    name="equity_curve",
    description="Daily portfolio value",
    columns=[
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="value", dtype="float64", required=True),
    ],
)
