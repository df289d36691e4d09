"""
Append-only decision logging for the DRIP backtest system.

Every backtest run, benchmark outcome and loaded configuration is logged
with a timestamp to support auditability and reproducibility.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from drip_pilot.models import (
    ActionType,
    BacktestConfig,
    BacktestReport,
    DecisionLogEntry,
    SimulationResult,
)


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Write a decision log entry.

        Args:
            entry: DecisionLogEntry to write
        """
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "run_id": entry.run_id,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def log_config_loaded(
        self,
        config: BacktestConfig,
        config_path: str,
    ) -> None:
        """
        Log configuration loading.

        Args:
            config: Loaded configuration
            config_path: Path to configuration file
        """
        details = {
            "config_path": config_path,
            "symbol": config.symbol,
            "start_date": config.start_date.isoformat(),
            "end_date": config.end_date.isoformat(),
            "investment_amount": str(config.investment_amount),
            "use_drip": config.use_drip,
            "fee_discount": str(config.fee_discount),
            "deduct_tax": config.deduct_tax,
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.CONFIG_LOADED,
            run_id=None,
            details=details,
        )
        self.log(entry)

    def log_backtest_completed(self, report: BacktestReport) -> None:
        """
        Log a completed backtest.

        Args:
            report: Composed backtest report
        """
        result = report.result
        details = {
            "symbol": result.symbol,
            "start_date": report.config.start_date.isoformat(),
            "end_date": report.config.end_date.isoformat(),
            "investment_amount": str(report.config.investment_amount),
            "final_market_value": str(result.final_market_value),
            "total_return": str(result.total_return),
            "return_rate": str(result.return_rate),
            "max_drawdown": str(result.max_drawdown),
            "num_events": len(result.events),
            "trading_days": len(result.equity_curve),
            "benchmark": report.benchmark.symbol if report.benchmark else None,
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.BACKTEST_COMPLETED,
            run_id=report.run_id,
            details=details,
        )
        self.log(entry)

    def log_benchmark_completed(
        self,
        run_id: Optional[str],
        result: SimulationResult,
    ) -> None:
        """Log a successful benchmark run."""
        entry = DecisionLogEntry.create(
            action_type=ActionType.BENCHMARK_COMPLETED,
            run_id=run_id,
            details={
                "symbol": result.symbol,
                "total_return": str(result.total_return),
                "return_rate": str(result.return_rate),
            },
        )
        self.log(entry)

    def log_benchmark_skipped(
        self,
        run_id: Optional[str],
        symbol: str,
        reason: str,
    ) -> None:
        """
        Log a benchmark run that failed and was left out of the report.

        Args:
            run_id: Backtest run identifier
            symbol: Benchmark symbol
            reason: Error description
        """
        entry = DecisionLogEntry.create(
            action_type=ActionType.BENCHMARK_SKIPPED,
            run_id=run_id,
            details={"symbol": symbol, "reason": reason},
        )
        self.log(entry)

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        run_id=record.get("run_id"),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_run(self, run_id: str) -> list[DecisionLogEntry]:
        """Get log entries for a specific backtest run."""
        return [e for e in self.read_log() if e.run_id == run_id]

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)


# Global logger instance (initialized on first use)
_global_logger: Optional[DecisionLogger] = None


def get_logger(log_path: Optional[str | Path] = None) -> DecisionLogger:
    """
    Get or create the global decision logger.

    Args:
        log_path: Optional path to initialize logger

    Returns:
        DecisionLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if log_path is None:
            log_path = "output/decision_log.jsonl"
        _global_logger = DecisionLogger(log_path)
    elif log_path is not None:
        # Allow reinitializing with new path
        _global_logger = DecisionLogger(log_path)

    return _global_logger


def log_action(
    action_type: ActionType,
    run_id: Optional[str],
    details: dict,
    log_path: Optional[str | Path] = None,
) -> None:
    """
    Convenience function to log an action.

    Args:
        action_type: Type of action
        run_id: Backtest run identifier (optional)
        details: Action details dictionary
        log_path: Optional path to log file
    """
    logger = get_logger(log_path)
    entry = DecisionLogEntry.create(
        action_type=action_type,
        run_id=run_id,
        details=details,
    )
    logger.log(entry)
