#!filepath: tradeflow/backtest/report.py
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from tradeflow import logs  # noqa: E402
from tradeflow.backtest.metrics import build_trade_pairs  # noqa: E402
from tradeflow.backtest.models import BacktestResult  # noqa: E402


class Report(ABC):
    """
    Report（FROZEN）

    BacktestResult -> 外部产物（文件 / 图）

    - 只读 BacktestResult，不改变回测与 metrics
    - 删除 report 不影响结果可复现
    """

    @abstractmethod
    def render(self, result: BacktestResult) -> Path:
        ...


class MetricsReport(Report):
    def __init__(self, output_path):
        self._path = Path(output_path)

    def render(self, result: BacktestResult) -> Path:
        payload = {"run_id": result.run_id, **result.metrics.to_dict()}
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        return self._path


TRADE_COLUMNS = [
    "#", "entry_time", "exit_time", "entry_price", "exit_price",
    "quantity", "fee", "pnl", "pnl_pct", "balance",
]


class TradesReport(Report):
    """一行一个 round trip"""

    def __init__(self, output_path):
        self._path = Path(output_path)

    def render(self, result: BacktestResult) -> Path:
        rows = [
            {
                "#": i,
                "entry_time": p.entry.candle_time,
                "exit_time": p.exit.candle_time,
                "entry_price": p.entry.price,
                "exit_price": p.exit.price,
                "quantity": p.exit.quantity,
                "fee": p.entry.fee + p.exit.fee,
                "pnl": p.pnl,
                "pnl_pct": p.pnl_pct,
                "balance": p.exit.capital_after,
            }
            for i, p in enumerate(build_trade_pairs(result.trades), 1)
        ]
        pd.DataFrame(rows, columns=TRADE_COLUMNS).to_csv(self._path, index=False)
        return self._path


class EquityCurveReport(Report):
    def __init__(self, csv_path, png_path):
        self._csv = Path(csv_path)
        self._png = Path(png_path)

    def render(self, result: BacktestResult) -> Path:
        df = pd.DataFrame(
            {
                "time": [p.candle_time for p in result.equity_points],
                "equity": [p.equity for p in result.equity_points],
                "drawdown": [p.drawdown for p in result.equity_points],
            }
        )
        df.to_csv(self._csv, index=False)

        fig, ax = plt.subplots(figsize=(10, 4))
        ax.plot(df["time"], df["equity"])
        ax.set_title(f"Equity Curve: run {result.run_id}")
        ax.set_xlabel("Time")
        ax.set_ylabel("Equity")
        fig.tight_layout()
        fig.savefig(self._png)
        plt.close(fig)
        return self._png


class ReportPipeline:
    def __init__(self, reports: list[Report]):
        self._reports = reports

    @classmethod
    def default(cls, out_dir) -> "ReportPipeline":
        out = Path(out_dir)
        out.mkdir(parents=True, exist_ok=True)
        return cls(
            [
                MetricsReport(out / "metrics.json"),
                TradesReport(out / "trades.csv"),
                EquityCurveReport(out / "equity_curve.csv", out / "equity_curve.png"),
            ]
        )

    def render_all(self, result: BacktestResult) -> list[Path]:
        paths = [r.render(result) for r in self._reports]
        logs.info(f"[Report] run={result.run_id} wrote {[p.name for p in paths]}")
        return paths
