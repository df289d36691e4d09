"""
Command-line interface for the Lump-Sum Dividend Backtest System.

Provides commands for:
- backtest: Simulate a lump-sum investment with dividends and splits
- splits: List the split events known for a symbol
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from drip_pilot import __version__
from drip_pilot.config import (
    ConfigurationError,
    build_backtest_config,
    load_backtest_config,
    load_split_table,
    write_config,
)
from drip_pilot.data import (
    CorporateActionProvider,
    adjust_price_bars,
    load_dividends,
    load_price_bars,
    save_price_bars,
)
from drip_pilot.data.loaders import DataLoadError
from drip_pilot.data.providers import (
    CsvDataProvider,
    DataProvider,
    DataProviderError,
    get_finmind_provider,
)
from drip_pilot.logging import get_logger
from drip_pilot.models import FeeSchedule
from drip_pilot.simulation import (
    DEFAULT_BENCHMARK_SYMBOL,
    SimulationEngine,
    SimulationError,
    generate_quick_summary,
    generate_report,
    run_backtest,
)


@click.group()
@click.version_option(version=__version__, prog_name="drip-pilot")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """
    Lump-sum dividend backtest for Taiwan-listed equities.

    Simulates buying a single stock with a lump sum, collecting (and
    optionally reinvesting) dividends, and compares the outcome with a
    benchmark ETF. Paper-only; no live trading.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("symbol", required=False)
@click.option("--start", "-s", type=str, default=None, help="Start date (YYYY-MM-DD)")
@click.option("--end", "-e", type=str, default=None, help="End date (YYYY-MM-DD)")
@click.option("--amount", "-a", type=str, default=None, help="Lump-sum investment amount")
@click.option(
    "--drip/--no-drip",
    default=True,
    help="Reinvest cash dividends (default: on)",
)
@click.option(
    "--fee-discount",
    type=str,
    default="10",
    help="Broker fee discount on a scale of 10 (default: 10, no discount)",
)
@click.option(
    "--tax/--no-tax",
    default=True,
    help="Deduct transaction tax on the final sale (default: on)",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Backtest configuration YAML; replaces the date/amount options",
)
@click.option(
    "--prices", "-p",
    type=click.Path(exists=True),
    default=None,
    help="Price bars CSV/Parquet (offline mode instead of FinMind)",
)
@click.option(
    "--dividends", "-d",
    type=click.Path(exists=True),
    default=None,
    help="Dividends CSV/Parquet (used with --prices)",
)
@click.option(
    "--benchmark", "-b",
    type=str,
    default=DEFAULT_BENCHMARK_SYMBOL,
    help=f"Benchmark symbol (default: {DEFAULT_BENCHMARK_SYMBOL})",
)
@click.option(
    "--split-table",
    type=click.Path(exists=True),
    default=None,
    help="YAML split table replacing the built-in one",
)
@click.option(
    "--cache-dir",
    type=click.Path(),
    default="data/cache",
    help="Cache directory for downloaded data",
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Disable data caching",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default="output",
    help="Output directory",
)
@click.option(
    "--log-file",
    type=click.Path(),
    default=None,
    help="Decision log path (default: <output-dir>/decision_log.jsonl)",
)
def backtest(
    symbol: Optional[str],
    start: Optional[str],
    end: Optional[str],
    amount: Optional[str],
    drip: bool,
    fee_discount: str,
    tax: bool,
    config: Optional[str],
    prices: Optional[str],
    dividends: Optional[str],
    benchmark: str,
    split_table: Optional[str],
    cache_dir: str,
    no_cache: bool,
    output_dir: str,
    log_file: Optional[str],
):
    """
    Run a lump-sum backtest for SYMBOL.

    Buys at the first trading day's open, applies dividends and splits
    day by day, and sells at the last close.

    Example:
        drip-pilot backtest 2330 --start 2020-01-02 --end 2024-12-31 --amount 100000
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    decision_logger = get_logger(Path(log_file) if log_file else out_dir / "decision_log.jsonl")

    try:
        if config:
            backtest_config, fees = load_backtest_config(config)
            if symbol is not None:
                backtest_config = build_backtest_config(
                    symbol=symbol,
                    start_date=backtest_config.start_date,
                    end_date=backtest_config.end_date,
                    investment_amount=backtest_config.investment_amount,
                    use_drip=backtest_config.use_drip,
                    fee_discount=backtest_config.fee_discount,
                    deduct_tax=backtest_config.deduct_tax,
                )
            decision_logger.log_config_loaded(backtest_config, config)
        else:
            missing = [
                name for name, value in
                (("SYMBOL", symbol), ("--start", start), ("--end", end), ("--amount", amount))
                if value is None
            ]
            if missing:
                raise click.UsageError(
                    f"Missing {', '.join(missing)} (or pass --config)"
                )
            backtest_config = build_backtest_config(
                symbol=symbol,
                start_date=start,
                end_date=end,
                investment_amount=amount,
                use_drip=drip,
                fee_discount=fee_discount,
                deduct_tax=tax,
            )
            fees = FeeSchedule()
        corporate_actions = _corporate_actions(split_table)
        provider = _make_provider(backtest_config.symbol, prices, dividends, cache_dir, no_cache)
    except ConfigurationError as e:
        raise click.ClickException(f"Error loading config: {e}")

    click.echo(f"\n{'='*60}")
    click.echo("  Lump-Sum Dividend Backtest")
    click.echo(f"{'='*60}")
    click.echo(f"  Symbol: {backtest_config.symbol}")
    click.echo(f"  Period: {backtest_config.start_date} to {backtest_config.end_date}")
    click.echo(f"  Amount: {backtest_config.investment_amount:,.0f}")
    click.echo(f"  DRIP:   {'on' if backtest_config.use_drip else 'off'}")
    click.echo(f"  Data:   {provider.name}")
    click.echo(f"{'='*60}\n")

    def progress(msg: str):
        click.echo(f"  {msg}")

    try:
        report = run_backtest(
            provider=provider,
            config=backtest_config,
            corporate_actions=corporate_actions,
            engine=SimulationEngine(fees),
            benchmark_symbol=benchmark,
            decision_logger=decision_logger,
            progress_callback=progress,
        )
    except (DataProviderError, SimulationError) as e:
        raise click.ClickException(f"Error running backtest: {e}")

    run_dir = out_dir / report.run_id
    paths = generate_report(report, run_dir)
    paths["config"] = run_dir / "config.yaml"
    write_config(backtest_config, paths["config"], fees=fees)

    click.echo(generate_quick_summary(report))

    click.echo(f"Outputs saved to: {run_dir}")
    for name, path in paths.items():
        click.echo(f"  - {name}: {path.name}")


@main.command()
@click.argument("symbol")
@click.option("--start", "-s", required=True, type=str, help="Start date (YYYY-MM-DD)")
@click.option("--end", "-e", required=True, type=str, help="End date (YYYY-MM-DD)")
@click.option(
    "--split-table",
    type=click.Path(exists=True),
    default=None,
    help="YAML split table replacing the built-in one",
)
@click.option(
    "--dividends", "-d",
    type=click.Path(exists=True),
    default=None,
    help="Dividends CSV; stock dividends are listed as derived splits",
)
@click.option(
    "--prices", "-p",
    type=click.Path(exists=True),
    default=None,
    help="Price bars CSV to back-adjust (used with --adjusted-prices)",
)
@click.option(
    "--adjusted-prices",
    type=click.Path(),
    default=None,
    help="Write split-adjusted prices to this CSV",
)
def splits(
    symbol: str,
    start: str,
    end: str,
    split_table: Optional[str],
    dividends: Optional[str],
    prices: Optional[str],
    adjusted_prices: Optional[str],
):
    """
    List split events for SYMBOL in a date range.

    Optionally back-adjusts a price file so pre-split prices line up with
    post-split prices.
    """
    try:
        start_date = _parse_cli_date(start)
        end_date = _parse_cli_date(end)
        corporate_actions = _corporate_actions(split_table)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if adjusted_prices and not prices:
        raise click.UsageError("--adjusted-prices requires --prices")

    try:
        dividend_records = load_dividends(dividends, symbol=symbol) if dividends else []
    except DataLoadError as e:
        raise click.ClickException(f"Error loading dividends: {e}")

    events = corporate_actions.list_splits(
        symbol, start_date, end_date, dividends=dividend_records
    )

    if not events:
        click.echo(f"No splits for {symbol} between {start_date} and {end_date}")
    else:
        click.echo(f"\nSplits for {symbol} ({start_date} to {end_date}):\n")
        click.echo(f"  {'Effective':<12} {'Multiplier':>10}  {'Source':<8} Description")
        click.echo(f"  {'-'*12} {'-'*10}  {'-'*8} {'-'*30}")
        for event in events:
            click.echo(
                f"  {event.effective_date.isoformat():<12} "
                f"{str(event.share_multiplier):>10}  "
                f"{event.source.value:<8} {event.description}"
            )

    if adjusted_prices:
        try:
            bars = load_price_bars(prices, symbol=symbol)
        except DataLoadError as e:
            raise click.ClickException(f"Error loading prices: {e}")
        bars = [b for b in bars if start_date <= b.date <= end_date]
        path = save_price_bars(adjust_price_bars(bars, events), adjusted_prices)
        click.echo(f"\nAdjusted prices saved: {path}")


def _parse_cli_date(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ConfigurationError(f"Invalid date format: {value}. Use YYYY-MM-DD.")


def _corporate_actions(split_table: Optional[str]) -> CorporateActionProvider:
    if split_table:
        return CorporateActionProvider(load_split_table(split_table))
    return CorporateActionProvider()


def _make_provider(
    symbol: str,
    prices: Optional[str],
    dividends: Optional[str],
    cache_dir: str,
    no_cache: bool,
) -> DataProvider:
    """Offline files when --prices is given, FinMind otherwise."""
    if prices:
        return CsvDataProvider(symbol, prices, dividends)
    if dividends:
        raise click.UsageError("--dividends requires --prices")
    return get_finmind_provider(use_cache=not no_cache, cache_dir=cache_dir)


if __name__ == "__main__":
    main()
