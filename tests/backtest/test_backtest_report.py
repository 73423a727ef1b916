#!filepath: tests/backtest/test_backtest_report.py
import json
from datetime import datetime, timedelta, timezone

import pandas as pd

from tradeflow.backtest.metrics import calculate
from tradeflow.backtest.models import BacktestEquityPoint, BacktestResult, BacktestTrade, OrderSide
from tradeflow.backtest.report import ReportPipeline, TradesReport

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _result() -> BacktestResult:
    trades = [
        BacktestTrade(1, OrderSide.BUY, 100.0, 1.0, T0, 900.0),
        BacktestTrade(1, OrderSide.SELL, 110.0, 1.0, T0 + timedelta(minutes=5), 1010.0),
        BacktestTrade(1, OrderSide.BUY, 105.0, 1.0, T0 + timedelta(minutes=6), 905.0),
    ]
    points = [
        BacktestEquityPoint(1, T0, 1000.0),
        BacktestEquityPoint(1, T0 + timedelta(minutes=5), 1010.0),
    ]
    return BacktestResult(run_id=1, metrics=calculate(1000.0, trades, points), trades=trades, equity_points=points)


def test_report_pipeline_writes_all_artifacts(tmp_path):
    paths = ReportPipeline.default(tmp_path / "report").render_all(_result())

    out = tmp_path / "report"
    assert {p.name for p in paths} == {"metrics.json", "trades.csv", "equity_curve.png"}
    assert (out / "equity_curve.csv").exists()
    assert (out / "equity_curve.png").stat().st_size > 0

    metrics = json.loads((out / "metrics.json").read_text(encoding="utf-8"))
    assert metrics["run_id"] == 1
    assert metrics["total_trades"] == 1
    assert metrics["average_holding_period_seconds"] == 300.0


def test_trades_report_one_row_per_round_trip(tmp_path):
    path = TradesReport(tmp_path / "trades.csv").render(_result())

    df = pd.read_csv(path)
    assert len(df) == 1
    row = df.iloc[0]
    assert row["entry_price"] == 100.0
    assert row["exit_price"] == 110.0
    assert row["pnl"] == 10.0
    assert row["pnl_pct"] == 10.0
    assert row["balance"] == 1010.0


def test_trades_report_without_trades_writes_header(tmp_path):
    empty = BacktestResult(run_id=2, metrics=calculate(1000.0, [], []))

    path = TradesReport(tmp_path / "trades.csv").render(empty)

    assert pd.read_csv(path).empty
