"""
Configuration loading and management for the DRIP backtest system.

This module handles loading backtest configurations and split tables from
YAML files, API token management, and validation of configuration parameters.
"""

import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import dotenv_values

from drip_pilot.models import BacktestConfig, FeeSchedule, SplitEvent, SplitSource


# Default paths for configuration files
PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
DEFAULT_API_KEYS_FILE = PROJECT_ROOT / "config" / "api_keys.yaml"

# Fee discount is expressed on a scale of 10 (10 = full rate)
MAX_FEE_DISCOUNT = Decimal("10")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_api_keys(
    env_file: str | Path | None = None,
    api_keys_file: str | Path | None = None,
) -> dict[str, str]:
    """
    Load API tokens from multiple sources with priority.

    Sources are checked in this order (later sources override earlier):
    1. config/api_keys.yaml file
    2. .env file in project root
    3. Environment variables

    Args:
        env_file: Path to .env file (defaults to project root .env)
        api_keys_file: Path to api_keys.yaml (defaults to config/api_keys.yaml)

    Returns:
        Dictionary with API keys:
        - finmind_api_token: FinMind API token (if available)
    """
    api_keys: dict[str, str] = {}

    # 1. Load from config/api_keys.yaml
    yaml_path = Path(api_keys_file) if api_keys_file else DEFAULT_API_KEYS_FILE
    if yaml_path.exists():
        try:
            with open(yaml_path, "r") as f:
                yaml_config = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            raise ConfigurationError(f"Cannot read {yaml_path}: {e}")
        if isinstance(yaml_config, dict) and yaml_config.get("finmind_api_token"):
            api_keys["finmind_api_token"] = str(yaml_config["finmind_api_token"])

    # 2. Load from .env file
    env_path = Path(env_file) if env_file else DEFAULT_ENV_FILE
    if env_path.exists():
        env_values = dotenv_values(env_path)
        if env_values.get("FINMIND_API_TOKEN"):
            api_keys["finmind_api_token"] = str(env_values["FINMIND_API_TOKEN"])

    # 3. Override with environment variables (highest priority)
    if os.environ.get("FINMIND_API_TOKEN"):
        api_keys["finmind_api_token"] = os.environ["FINMIND_API_TOKEN"]

    return api_keys


def load_backtest_config(config_path: str | Path) -> tuple[BacktestConfig, FeeSchedule]:
    """
    Load a backtest configuration from a YAML file.

    Example file:

        symbol: "2330"
        start_date: 2020-01-02
        end_date: 2024-12-31
        investment_amount: 100000
        use_drip: true
        fee_discount: 2.8
        deduct_tax: true
        fees:
          min_fee: 1

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Tuple of (BacktestConfig, FeeSchedule)

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    return _parse_backtest_config(raw_config), _parse_fee_schedule(raw_config.get("fees") or {})


def _parse_backtest_config(raw: dict[str, Any]) -> BacktestConfig:
    """
    Parse and validate raw configuration dictionary into BacktestConfig.

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    required_fields = ["symbol", "start_date", "end_date", "investment_amount"]
    for field in required_fields:
        if field not in raw:
            raise ConfigurationError(f"Missing required configuration field: {field}")

    return build_backtest_config(
        symbol=raw["symbol"],
        start_date=raw["start_date"],
        end_date=raw["end_date"],
        investment_amount=raw["investment_amount"],
        use_drip=_parse_bool(raw.get("use_drip", True), "use_drip"),
        fee_discount=raw.get("fee_discount", "10"),
        deduct_tax=_parse_bool(raw.get("deduct_tax", True), "deduct_tax"),
    )


def build_backtest_config(
    symbol: Any,
    start_date: Any,
    end_date: Any,
    investment_amount: Any,
    use_drip: bool = True,
    fee_discount: Any = "10",
    deduct_tax: bool = True,
) -> BacktestConfig:
    """
    Validate raw values and build a BacktestConfig.

    Used by both the YAML loader and the CLI.

    Raises:
        ConfigurationError: If any value is missing or out of range
    """
    symbol = str(symbol).strip()
    if not symbol:
        raise ConfigurationError("symbol cannot be empty")

    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if start > end:
        raise ConfigurationError(f"start_date {start} is after end_date {end}")

    amount = _parse_decimal(investment_amount, "investment_amount")
    if amount <= 0:
        raise ConfigurationError("investment_amount must be positive")

    discount = _parse_decimal(fee_discount, "fee_discount", max_val=MAX_FEE_DISCOUNT)
    if discount <= 0:
        raise ConfigurationError("fee_discount must be greater than 0")

    return BacktestConfig(
        symbol=symbol,
        start_date=start,
        end_date=end,
        investment_amount=amount,
        use_drip=bool(use_drip),
        fee_discount=discount,
        deduct_tax=bool(deduct_tax),
    )


def _parse_fee_schedule(raw: dict[str, Any]) -> FeeSchedule:
    """Parse the optional `fees` section, falling back to exchange defaults."""
    if not isinstance(raw, dict):
        raise ConfigurationError("fees must be a mapping")

    defaults = FeeSchedule()
    return FeeSchedule(
        fee_rate=_parse_decimal(
            raw.get("fee_rate", defaults.fee_rate), "fee_rate",
            min_val=Decimal("0"), max_val=Decimal("1"),
        ),
        min_fee=_parse_decimal(
            raw.get("min_fee", defaults.min_fee), "min_fee", min_val=Decimal("0"),
        ),
        tax_rate=_parse_decimal(
            raw.get("tax_rate", defaults.tax_rate), "tax_rate",
            min_val=Decimal("0"), max_val=Decimal("1"),
        ),
    )


def load_split_table(table_path: str | Path) -> dict[str, list[SplitEvent]]:
    """
    Load a curated split table from YAML.

    Expected layout:

        "0050":
          - effective_date: 2025-06-18
            multiplier: 4
            description: 1-for-4 split

    Args:
        table_path: Path to the YAML split table

    Returns:
        Mapping of symbol to its static split events

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    table_path = Path(table_path)
    if not table_path.exists():
        raise ConfigurationError(f"Split table not found: {table_path}")

    try:
        with open(table_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in split table: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError("Split table must map symbols to lists of splits")

    table: dict[str, list[SplitEvent]] = {}
    for symbol, entries in raw.items():
        if not isinstance(entries, list):
            raise ConfigurationError(f"Splits for {symbol} must be a list")
        splits = []
        for entry in entries:
            if not isinstance(entry, dict) or "effective_date" not in entry or "multiplier" not in entry:
                raise ConfigurationError(
                    f"Split entries for {symbol} need effective_date and multiplier"
                )
            multiplier = _parse_decimal(entry["multiplier"], "multiplier")
            if multiplier <= 0:
                raise ConfigurationError(f"multiplier for {symbol} must be positive")
            splits.append(
                SplitEvent(
                    effective_date=_parse_date(entry["effective_date"], "effective_date"),
                    share_multiplier=multiplier,
                    source=SplitSource.STATIC,
                    description=str(entry.get("description", "")),
                )
            )
        table[str(symbol)] = splits

    return table


def _parse_date(value: Any, field_name: str) -> date:
    """
    Parse a date value from various formats.

    Raises:
        ConfigurationError: If the date cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            pass

        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass

    raise ConfigurationError(
        f"Invalid date format for {field_name}: {value}. Expected YYYY-MM-DD"
    )


def _parse_decimal(
    value: Any,
    field_name: str,
    min_val: Decimal | None = None,
    max_val: Decimal | None = None,
) -> Decimal:
    """
    Parse a decimal value with optional range validation.

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if min_val is not None and decimal_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {decimal_value}"
        )

    if max_val is not None and decimal_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {decimal_value}"
        )

    return decimal_value


def _parse_bool(value: Any, field_name: str) -> bool:
    """Parse a YAML boolean, accepting common string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0"):
        return False
    raise ConfigurationError(f"Invalid boolean value for {field_name}: {value}")


def write_config(
    config: BacktestConfig,
    output_path: str | Path,
    fees: Optional[FeeSchedule] = None,
) -> None:
    """
    Write a BacktestConfig (and optional fee schedule) to a YAML file.

    Args:
        config: The configuration to write
        output_path: Path to write the YAML file
        fees: Fee schedule to include under `fees`
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "symbol": config.symbol,
        "start_date": config.start_date.isoformat(),
        "end_date": config.end_date.isoformat(),
        "investment_amount": str(config.investment_amount),
        "use_drip": config.use_drip,
        "fee_discount": str(config.fee_discount),
        "deduct_tax": config.deduct_tax,
    }
    if fees is not None:
        config_dict["fees"] = {
            "fee_rate": str(fees.fee_rate),
            "min_fee": str(fees.min_fee),
            "tax_rate": str(fees.tax_rate),
        }

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
