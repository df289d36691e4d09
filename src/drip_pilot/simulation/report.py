"""
Report generation for backtest results.

Generates human-readable markdown reports and JSON metric files
summarizing backtest performance and the transaction ledger.
"""

from pathlib import Path

from drip_pilot.data.loaders import save_equity_curve, save_events
from drip_pilot.models import BacktestReport, TransactionType
from drip_pilot.simulation.metrics import SimulationMetrics, calculate_metrics


def generate_report(
    report: BacktestReport,
    output_dir: str | Path,
    include_event_details: bool = True,
) -> dict[str, Path]:
    """
    Generate complete backtest report.

    Creates:
    - run_report.md: Human-readable markdown summary
    - metrics.json: Machine-readable metrics
    - events.csv: Transaction ledger
    - equity_curve.csv: Daily portfolio values

    Args:
        report: Composed backtest report
        output_dir: Directory to save outputs
        include_event_details: Include the ledger table in markdown

    Returns:
        Dictionary mapping output type to file path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {}

    metrics = calculate_metrics(
        report.result,
        report.config.investment_amount,
        benchmark=report.benchmark,
    )

    metrics_path = output_dir / "metrics.json"
    metrics.to_json(metrics_path)
    paths["metrics"] = metrics_path

    paths["events"] = save_events(report.result.events, output_dir / "events.csv")
    paths["equity_curve"] = save_equity_curve(
        report.result.equity_curve, output_dir / "equity_curve.csv"
    )

    report_path = output_dir / "run_report.md"
    with open(report_path, "w") as f:
        f.write(_generate_markdown_report(report, metrics, include_event_details))
    paths["report"] = report_path

    return paths


def _generate_markdown_report(
    report: BacktestReport,
    metrics: SimulationMetrics,
    include_event_details: bool,
) -> str:
    """Generate markdown report content."""
    config = report.config
    result = report.result

    lines = [
        f"# Lump-Sum Backtest Report: {result.symbol}",
        "",
        f"**Run ID:** `{report.run_id}`",
        f"**Generated:** {report.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "---",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Period | {config.start_date} to {config.end_date} |",
        f"| Trading Days | {metrics.trading_days} |",
        f"| Investment | {config.investment_amount:,.0f} |",
        f"| Entry Price | {result.initial_price} |",
        f"| Exit Price | {result.final_price} |",
        f"| Shares (entry / exit) | {result.initial_shares:,} / {result.final_shares:,} |",
        f"| Final Value | {result.final_market_value:,.0f} |",
        f"| Capital Gains | {result.capital_gains:,.0f} |",
        f"| Cash Dividends | {result.total_cash_dividends:,.0f} |",
        f"| Total Return | {result.total_return:,.0f} ({result.return_rate:.2f}%) |",
        f"| Max Drawdown | {result.max_drawdown}% |",
        "",
        "### Settings",
        "",
        f"- Dividend reinvestment: {'on' if config.use_drip else 'off'}",
        f"- Fee discount: {config.fee_discount}/10",
        f"- Transaction tax: {'deducted' if config.deduct_tax else 'not deducted'}",
        "",
    ]

    if report.benchmark is not None:
        excess = report.excess_return_rate
        lines.extend([
            "---",
            "",
            "## Benchmark Comparison",
            "",
            f"| Metric | {result.symbol} | {report.benchmark.symbol} | Difference |",
            "|--------|------|------|------------|",
            f"| Return Rate | {result.return_rate:.2f}% | "
            f"{report.benchmark.return_rate:.2f}% | {excess:+.2f}% |",
            f"| Total Return | {result.total_return:,.0f} | "
            f"{report.benchmark.total_return:,.0f} | "
            f"{result.total_return - report.benchmark.total_return:+,.0f} |",
            "",
        ])

    lines.extend([
        "---",
        "",
        "## Performance Metrics",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| CAGR | {metrics.cagr:.2%} |",
        f"| Annualized Volatility | {metrics.annualized_volatility:.2%} |",
        f"| Sharpe Ratio | {metrics.sharpe_ratio:.2f} |",
        f"| Max Drawdown Date | {metrics.max_drawdown_date or '-'} |",
        f"| Average Drawdown | {metrics.avg_drawdown:.2%} |",
        f"| Fees Paid | {metrics.total_fees:,.0f} |",
        f"| Tax Paid | {metrics.total_tax:,.0f} |",
        f"| Reinvested Shares | {metrics.reinvested_shares:,} |",
        "",
    ])

    if include_event_details and result.events:
        lines.extend([
            "---",
            "",
            "## Transaction Ledger",
            "",
            "| Date | Type | Price | Shares | Amount | Balance |",
            "|------|------|-------|--------|--------|---------|",
        ])
        for event in result.events:
            price = f"{event.price}" if event.price is not None else "-"
            shares = f"{event.shares:,}" if event.shares is not None else "-"
            lines.append(
                f"| {event.date} | {event.type.value} | {price} | {shares} | "
                f"{event.amount:,.0f} | {event.balance_after:,.0f} |"
            )
        lines.append("")

    lines.extend([
        "---",
        "",
        "## Notes",
        "",
        "1. Entry is at the first trading day's open; exit at the last close.",
        "2. Only whole shares are traded; unaffordable reinvestments stay in cash.",
        "3. Historical prices are unadjusted; splits multiply the share count.",
        "",
    ])

    return "\n".join(lines)


def generate_quick_summary(report: BacktestReport) -> str:
    """
    Generate a quick text summary for console output.

    Args:
        report: Composed backtest report

    Returns:
        Formatted summary string
    """
    config = report.config
    result = report.result
    drip_events = [
        e for e in result.events
        if e.type == TransactionType.DIVIDEND_CASH and e.shares
    ]

    lines = [
        f"\n{'='*60}",
        f"  Backtest Summary: {result.symbol}",
        f"{'='*60}",
        "",
        f"  Period:      {config.start_date} to {config.end_date}",
        f"  Days:        {len(result.equity_curve)}",
        "",
        f"  Invested:    {float(config.investment_amount):>14,.0f}",
        f"  Final:       {float(result.final_market_value):>14,.0f}",
        f"  Return:      {float(result.return_rate):>13.2f}%",
        f"  Dividends:   {float(result.total_cash_dividends):>14,.0f}",
        f"  Max DD:      {float(result.max_drawdown):>13.2f}%",
    ]

    if report.benchmark is not None:
        lines.append(
            f"  {report.benchmark.symbol + ':':<12} {float(report.benchmark.return_rate):>13.2f}%"
        )
        lines.append(f"  Excess:      {float(report.excess_return_rate):>+13.2f}%")

    lines.extend([
        "",
        f"  Shares:      {result.initial_shares:>14,} -> {result.final_shares:,}",
        f"  DRIP buys:   {len(drip_events):>14}",
        f"  Events:      {len(result.events):>14}",
    ])

    if result.initial_shares == 0:
        lines.append("")
        lines.append("  ⚠️  Investment too small to buy a single share")

    lines.append(f"{'='*60}\n")

    return "\n".join(lines)
