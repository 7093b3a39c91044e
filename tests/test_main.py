"""
Tests for the command-line entry point.

**Purpose**: Run main() end to end on a small CSV written to tmp_path, without
touching the real environment or data/ directory.
"""

import json

import pandas as pd
import pytest
from loguru import logger

import main
from src.config.settings import reset_settings


@pytest.fixture
def cli_env(monkeypatch):
    for name in ("PAPER_BROKER_INITIAL_DEPOSIT", "PAPER_BROKER_FEE_BPS", "PAPER_BROKER_FEE_PER_TRADE",
                 "PAPER_BROKER_SLIPPAGE_BPS", "PAPER_BROKER_BASE_CURRENCY", "LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    reset_settings()
    yield
    reset_settings()
    logger.remove()


def write_csv(path, prices):
    pd.DataFrame({
        'timestamp': pd.date_range('2024-01-01', periods=len(prices), freq='D', tz='UTC'),
        'closing_price': prices,
    }).to_csv(path, index=False)


def test_main_prints_json_metrics(tmp_path, capsys, cli_env):
    csv_path = tmp_path / "qqq.csv"
    write_csv(csv_path, [100.0, 102.0, 104.0])

    code = main.main([str(csv_path), "--size", "10", "--initial-deposit", "10000",
                      "--fee-per-trade", "1", "--json"])

    assert code == 0
    metrics = json.loads(capsys.readouterr().out)
    # 10 * (104 - 100) - 2 fees
    assert metrics['final_equity'] == pytest.approx(10_038.0)
    assert metrics['num_trades'] == 2


def test_main_text_report_uses_file_stem(tmp_path, capsys, cli_env):
    csv_path = tmp_path / "spy.csv"
    write_csv(csv_path, [100.0, 101.0])

    assert main.main([str(csv_path), "--no-liquidate"]) == 0

    out = capsys.readouterr().out
    assert "Buy and hold 100 SPY (2 events)" in out
    assert "Trades:" in out


def test_main_missing_file_returns_error(tmp_path, cli_env):
    assert main.main([str(tmp_path / "missing.csv")]) == 1


def test_main_bad_csv_returns_error(tmp_path, cli_env):
    csv_path = tmp_path / "bad.csv"
    pd.DataFrame({'timestamp': ['2024-01-01'], 'close': [1.0]}).to_csv(csv_path, index=False)
    assert main.main([str(csv_path)]) == 1
