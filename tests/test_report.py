"""
Tests for report output and the decision log.
"""

import json
from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from drip_pilot.logging.decision_log import DecisionLogger, get_logger, log_action
from drip_pilot.models import ActionType
from drip_pilot.simulation.backtest import run_backtest
from drip_pilot.simulation.report import generate_quick_summary, generate_report


@pytest.fixture
def report(fake_provider, backtest_config):
    return run_backtest(
        fake_provider,
        backtest_config,
        id_factory=lambda config: "run-42",
        clock=lambda: datetime(2024, 2, 1, 9, 30),
    )


class TestGenerateReport:
    """Tests for generate_report."""

    def test_writes_all_outputs(self, report, tmp_path):
        paths = generate_report(report, tmp_path / "out")

        assert set(paths) == {"metrics", "events", "equity_curve", "report"}
        for path in paths.values():
            assert path.exists()

    def test_ledger_matches_events(self, report, tmp_path):
        paths = generate_report(report, tmp_path)

        df = pd.read_csv(paths["events"])
        assert list(df["type"]) == [e.type.value for e in report.result.events]

        curve = pd.read_csv(paths["equity_curve"])
        assert len(curve) == len(report.result.equity_curve)

    def test_markdown_content(self, report, tmp_path):
        paths = generate_report(report, tmp_path)
        text = paths["report"].read_text()

        assert "# Lump-Sum Backtest Report: 2330" in text
        assert "**Run ID:** `run-42`" in text
        assert "2024-02-01 09:30:00" in text
        assert "## Benchmark Comparison" in text
        assert "## Transaction Ledger" in text

    def test_markdown_without_ledger(self, report, tmp_path):
        paths = generate_report(report, tmp_path, include_event_details=False)
        assert "## Transaction Ledger" not in paths["report"].read_text()

    def test_metrics_json(self, report, tmp_path):
        paths = generate_report(report, tmp_path)
        data = json.loads(paths["metrics"].read_text())

        assert data["trading_days"] == 3
        assert data["benchmark_return"] is not None


class TestQuickSummary:
    """Tests for the console summary."""

    def test_contains_headline_numbers(self, report):
        text = generate_quick_summary(report)

        assert "Backtest Summary: 2330" in text
        assert "006208:" in text
        assert "Excess:" in text

    def test_without_benchmark(self, report):
        report.benchmark = None
        assert "Excess:" not in generate_quick_summary(report)


class TestDecisionLogger:
    """Tests for the JSONL audit log."""

    def test_entries_are_json_lines(self, report, tmp_path):
        logger = DecisionLogger(tmp_path / "logs" / "decisions.jsonl")
        logger.log_config_loaded(report.config, "config.yaml")
        logger.log_backtest_completed(report)

        lines = (tmp_path / "logs" / "decisions.jsonl").read_text().splitlines()
        assert len(lines) == 2
        record = json.loads(lines[1])
        assert set(record) == {"timestamp", "action_type", "run_id", "details"}
        assert record["action_type"] == "BACKTEST_COMPLETED"
        assert record["run_id"] == "run-42"
        assert record["details"]["investment_amount"] == "100000"

    def test_append_only(self, report, tmp_path):
        path = tmp_path / "decisions.jsonl"
        DecisionLogger(path).log_backtest_completed(report)
        DecisionLogger(path).log_backtest_completed(report)

        assert len(DecisionLogger(path).read_log()) == 2

    def test_filters(self, report, tmp_path):
        logger = DecisionLogger(tmp_path / "decisions.jsonl")
        logger.log_config_loaded(report.config, "config.yaml")
        logger.log_benchmark_skipped("run-42", "006208", "timeout")

        assert len(logger.filter_by_run("run-42")) == 1
        configs = logger.filter_by_action_type(ActionType.CONFIG_LOADED)
        assert configs[0].details["symbol"] == "2330"

    def test_missing_file_reads_empty(self, tmp_path):
        assert DecisionLogger(tmp_path / "none.jsonl").read_log() == []

    def test_log_action_with_decimal(self, tmp_path):
        path = tmp_path / "global.jsonl"
        log_action(ActionType.CONFIG_LOADED, None, {"amount": Decimal("1.5")}, log_path=path)

        entries = get_logger(path).read_log()
        assert entries[0].details == {"amount": "1.5"}
