#!filepath: tests/test_cli.py
from datetime import timedelta

import pytest
from conftest import T0, make_candles
from typer.testing import CliRunner

from tradeflow.cli import app
from tradeflow.storage.candles import ParquetCandleSource

runner = CliRunner()

PIPELINES_YML = """
pipelines:
  - id: 1
    name: always-buy
    instrument: BTC-USDT
    market_type: okx
    steps:
      - {key: check-position, order: 1}
      - {key: constant-signal, order: 2}
      - {key: entry-step, order: 3, parameters: {tradeAmount: 100}}
  - id: 2
    name: broken
    instrument: BTC-USDT
    market_type: okx
    steps:
      - {key: no-such-step, order: 1}
"""


@pytest.fixture
def workspace(tmp_path):
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(
        f"log:\n  dir: {tmp_path / 'logs'}\nstorage:\n  data_root: {tmp_path / 'data'}\n",
        encoding="utf-8",
    )
    data = tmp_path / "data"
    data.mkdir()
    (data / "pipelines.yml").write_text(PIPELINES_YML, encoding="utf-8")
    ParquetCandleSource(data / "candles").write(make_candles([100.0, 110.0, 120.0]))
    return tmp_path


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "v0.1.0" in result.stdout


def test_steps_lists_library():
    result = runner.invoke(app, ["steps"])

    assert result.exit_code == 0
    for key in ("check-position", "position-gate-step", "ema-signal", "entry-step"):
        assert key in result.stdout


def test_backtest_command_writes_reports(workspace):
    out = workspace / "report"
    end = (T0 + timedelta(hours=1)).strftime("%Y-%m-%d %H:%M:%S")

    result = runner.invoke(
        app,
        [
            "backtest", "--config", str(workspace / "cfg.yml"),
            "--pipeline-id", "1", "--start", "2025-01-01", "--end", end,
            "--interval", "1", "--out", str(out),
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert (out / "metrics.json").exists()
    assert (out / "trades.csv").exists()
    assert (workspace / "data" / "backtests" / "1" / "run.json").exists()


def test_backtest_command_reports_failure(workspace):
    result = runner.invoke(
        app,
        [
            "backtest", "--config", str(workspace / "cfg.yml"),
            "--pipeline-id", "2", "--start", "2025-01-01", "--end", "2025-01-02",
        ],
    )

    assert result.exit_code == 1
    assert "no-such-step" in result.stdout


def test_import_candles(workspace):
    csv = workspace / "eth.csv"
    csv.write_text(
        "timestamp,open,high,low,close\n"
        "2025-01-01 00:00:00,1,2,0.5,1.5\n"
        "2025-01-01 00:01:00,1.5,2,1,1.8\n",
        encoding="utf-8",
    )

    result = runner.invoke(
        app,
        ["import-candles", str(csv), "--instrument", "ETH-USDT", "--config", str(workspace / "cfg.yml")],
    )

    assert result.exit_code == 0, result.stdout
    assert (workspace / "data" / "candles" / "ETH-USDT_okx_1m.parquet").exists()
