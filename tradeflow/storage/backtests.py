#!filepath: tradeflow/storage/backtests.py
"""
Backtest persistence.

The engine writes in a fixed order: trades, equity points, logs, then the
final run row. Logs are buffered for the whole run and written in one batch.
"""
from __future__ import annotations

import json
from dataclasses import asdict, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import pandas as pd

from tradeflow import logs
from tradeflow.backtest.models import (
    BacktestEquityPoint,
    BacktestExecutionLog,
    BacktestRun,
    BacktestStatus,
    BacktestTrade,
    OrderSide,
)
from tradeflow.config.backtest_config import BacktestConfig
from tradeflow.pipeline.execution_log import utcnow
from tradeflow.utils.errors import PortError


class BacktestStore(Protocol):
    async def create_run(self, config: BacktestConfig) -> BacktestRun:
        ...

    async def get_run(self, run_id: int) -> Optional[BacktestRun]:
        ...

    async def update_run(self, run: BacktestRun) -> None:
        ...

    async def insert_trades(self, trades: Sequence[BacktestTrade]) -> None:
        ...

    async def insert_equity_points(self, points: Sequence[BacktestEquityPoint]) -> None:
        ...

    async def insert_logs(self, entries: Sequence[BacktestExecutionLog]) -> None:
        ...


def new_run(run_id: int, config: BacktestConfig) -> BacktestRun:
    return BacktestRun(
        id=run_id,
        pipeline_id=config.pipeline_id,
        start_date=config.start_date,
        end_date=config.end_date,
        interval_minutes=config.interval_minutes,
        initial_capital=config.initial_capital,
        status=BacktestStatus.PENDING,
        created_at=utcnow(),
    )


class InMemoryBacktestStore:
    def __init__(self) -> None:
        self.runs: Dict[int, BacktestRun] = {}
        self.trades: Dict[int, List[BacktestTrade]] = {}
        self.equity_points: Dict[int, List[BacktestEquityPoint]] = {}
        self.logs: Dict[int, List[BacktestExecutionLog]] = {}
        # 写入顺序（测试里校验 trades -> equity -> logs -> run）
        self.writes: List[str] = []

    async def create_run(self, config: BacktestConfig) -> BacktestRun:
        run = new_run(max(self.runs, default=0) + 1, config)
        self.runs[run.id] = run
        return replace(run)

    async def get_run(self, run_id: int) -> Optional[BacktestRun]:
        run = self.runs.get(run_id)
        return replace(run) if run is not None else None

    async def update_run(self, run: BacktestRun) -> None:
        self.runs[run.id] = replace(run)
        self.writes.append(f"run:{run.status.name}")

    async def insert_trades(self, trades: Sequence[BacktestTrade]) -> None:
        for t in trades:
            self.trades.setdefault(t.run_id, []).append(t)
        self.writes.append("trades")

    async def insert_equity_points(self, points: Sequence[BacktestEquityPoint]) -> None:
        for p in points:
            self.equity_points.setdefault(p.run_id, []).append(p)
        self.writes.append("equity")

    async def insert_logs(self, entries: Sequence[BacktestExecutionLog]) -> None:
        for e in entries:
            self.logs.setdefault(e.run_id, []).append(e)
        self.writes.append("logs")


# -------------------------
# parquet store
# -------------------------
_RUN_DATETIME_FIELDS = ("start_date", "end_date", "created_at", "completed_at")


def _run_to_json(run: BacktestRun) -> dict:
    data = asdict(run)
    data["status"] = run.status.name
    for k in _RUN_DATETIME_FIELDS:
        if data[k] is not None:
            data[k] = data[k].isoformat()
    return data


def _run_from_json(data: dict) -> BacktestRun:
    data = dict(data)
    data["status"] = BacktestStatus[data["status"]]
    for k in _RUN_DATETIME_FIELDS:
        if data.get(k) is not None:
            data[k] = datetime.fromisoformat(data[k])
    return BacktestRun(**data)


class ParquetBacktestStore:
    """
    <root>/<run_id>/
        run.json
        trades.parquet
        equity.parquet
        logs.parquet
    """

    RUN_FILE = "run.json"
    TRADES_FILE = "trades.parquet"
    EQUITY_FILE = "equity.parquet"
    LOGS_FILE = "logs.parquet"

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def run_dir(self, run_id: int) -> Path:
        return self.root / str(run_id)

    def _next_id(self) -> int:
        ids = [int(p.name) for p in self.root.iterdir() if p.is_dir() and p.name.isdigit()]
        return max(ids, default=0) + 1

    async def create_run(self, config: BacktestConfig) -> BacktestRun:
        run = new_run(self._next_id(), config)
        self.run_dir(run.id).mkdir(parents=True, exist_ok=False)
        self._write_run(run)
        logs.info(f"[Store] created run={run.id} dir={self.run_dir(run.id)}")
        return run

    async def get_run(self, run_id: int) -> Optional[BacktestRun]:
        path = self.run_dir(run_id) / self.RUN_FILE
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return _run_from_json(json.load(f))

    async def update_run(self, run: BacktestRun) -> None:
        self.run_dir(run.id).mkdir(parents=True, exist_ok=True)
        self._write_run(run)

    async def insert_trades(self, trades: Sequence[BacktestTrade]) -> None:
        rows = [
            {**asdict(t), "side": OrderSide(t.side).name}
            for t in trades
        ]
        self._append(trades, rows, self.TRADES_FILE)

    async def insert_equity_points(self, points: Sequence[BacktestEquityPoint]) -> None:
        self._append(points, [asdict(p) for p in points], self.EQUITY_FILE)

    async def insert_logs(self, entries: Sequence[BacktestExecutionLog]) -> None:
        self._append(entries, [asdict(e) for e in entries], self.LOGS_FILE)

    # -------------------------
    # read helpers
    # -------------------------
    def read_table(self, run_id: int, name: str) -> pd.DataFrame:
        path = self.run_dir(run_id) / name
        if not path.exists():
            return pd.DataFrame()
        return pd.read_parquet(path)

    # -------------------------
    # internal
    # -------------------------
    def _write_run(self, run: BacktestRun) -> None:
        path = self.run_dir(run.id) / self.RUN_FILE
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(_run_to_json(run), f, indent=2)
        except OSError as e:
            raise PortError(f"failed to write {path}: {e}") from e

    def _append(self, items: Sequence, rows: List[dict], name: str) -> None:
        if not items:
            return

        run_id = items[0].run_id
        path = self.run_dir(run_id) / name
        path.parent.mkdir(parents=True, exist_ok=True)

        df = pd.DataFrame(rows)
        if path.exists():
            df = pd.concat([pd.read_parquet(path), df], ignore_index=True)

        try:
            df.to_parquet(path, index=False)
        except OSError as e:
            raise PortError(f"failed to write {path}: {e}") from e
