#!filepath: tradeflow/cli.py
import asyncio
import signal
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from rich import print
from rich.table import Table

from tradeflow import AppConfig, Logging, __version__, logs
from tradeflow.backtest.engine import BacktestEngine
from tradeflow.backtest.models import BacktestError, BacktestMetrics
from tradeflow.backtest.report import ReportPipeline
from tradeflow.config.backtest_config import BacktestConfig
from tradeflow.observability.instrumentation import Instrumentation
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import MarketType
from tradeflow.pipeline.ports import Candle
from tradeflow.storage.backtests import ParquetBacktestStore
from tradeflow.storage.candles import ParquetCandleSource
from tradeflow.storage.pipelines import YamlPipelineRepository
from tradeflow.trading.library import trading_step_definitions
from tradeflow.utils.datetime_utils import as_utc
from tradeflow.utils.errors import UserInputError

app = typer.Typer(help="Tradeflow trading pipeline / backtest CLI")

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _load_config(config: Optional[Path]) -> AppConfig:
    cfg = AppConfig.load(str(config) if config else None)
    Logging.from_config(cfg.log)
    return cfg


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def steps():
    """
    列出 step library（key / 类别 / 参数）
    """
    table = Table(title="Step library")
    table.add_column("key", style="cyan", no_wrap=True)
    table.add_column("category")
    table.add_column("name")
    table.add_column("parameters", overflow="fold")

    # 只读取元数据，不会调用 collaborator
    for d in trading_step_definitions(get_position=None, executor=None):
        params = ", ".join(
            f"{p.key}={p.default}" if p.default is not None else p.key
            for p in d.parameter_schema.parameters
        )
        table.add_row(d.key, d.category.value, d.name, params or "-")

    print(table)


@app.command("import-candles")
def import_candles(
    csv_path: Path = typer.Argument(..., help="CSV with timestamp,open,high,low,close[,volume]"),
    instrument: str = typer.Option(..., "--instrument"),
    market: MarketType = typer.Option(MarketType.OKX, "--market"),
    timeframe: str = typer.Option("1m", "--timeframe"),
    candles_dir: Optional[Path] = typer.Option(None, "--candles"),
    config: Optional[Path] = typer.Option(None, "--config"),
):
    """
    CSV -> <candles>/<instrument>_<market>_<timeframe>.parquet
    """
    cfg = _load_config(config)
    root = candles_dir or Path(cfg.resolve(cfg.storage.candles_dir))

    df = pd.read_csv(csv_path, parse_dates=["timestamp"])
    if "volume" not in df.columns:
        df["volume"] = 0.0

    candles = [
        Candle(
            instrument=instrument,
            market_type=market,
            timeframe=timeframe,
            timestamp=as_utc(row.timestamp.to_pydatetime()),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]
    if not candles:
        raise UserInputError(f"No rows in {csv_path}")

    path = ParquetCandleSource(root).write(candles)
    print(f"[green]Wrote {len(candles)} candles -> {path}[/green]")


@logs.catch("backtest command failed")
def _run_backtest(engine: BacktestEngine, bt: BacktestConfig, token: CancellationToken):
    previous = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, lambda *_: token.cancel())
    try:
        return asyncio.run(engine.submit(bt, token))
    finally:
        signal.signal(signal.SIGINT, previous)


def _metrics_table(m: BacktestMetrics) -> Table:
    table = Table(title="Backtest metrics")
    table.add_column("metric")
    table.add_column("value", justify="right")
    for k, v in m.to_dict().items():
        table.add_row(k, f"{v:.4f}" if isinstance(v, float) else str(v))
    return table


@app.command()
def backtest(
    pipeline_id: int = typer.Option(..., "--pipeline-id"),
    start: datetime = typer.Option(..., "--start", formats=DATE_FORMATS),
    end: datetime = typer.Option(..., "--end", formats=DATE_FORMATS),
    interval: Optional[int] = typer.Option(None, "--interval", help="minutes between executions"),
    capital: Optional[float] = typer.Option(None, "--capital"),
    pipelines: Optional[Path] = typer.Option(None, "--pipelines"),
    candles: Optional[Path] = typer.Option(None, "--candles"),
    out: Optional[Path] = typer.Option(None, "--out", help="report directory"),
    config: Optional[Path] = typer.Option(None, "--config"),
):
    """
    回放历史 candles 运行一个 pipeline
    """
    cfg = _load_config(config)
    defaults = cfg.backtest

    try:
        bt = BacktestConfig(
            pipeline_id=pipeline_id,
            start_date=start,
            end_date=end,
            interval_minutes=interval if interval is not None else defaults.interval_minutes,
            initial_capital=capital if capital is not None else defaults.initial_capital,
        )
    except ValueError as e:
        raise UserInputError(f"Invalid backtest arguments: {e}") from e

    engine = BacktestEngine(
        pipelines=YamlPipelineRepository(pipelines or cfg.resolve(cfg.storage.pipelines_file)),
        candles=ParquetCandleSource(candles or cfg.resolve(cfg.storage.candles_dir)),
        store=ParquetBacktestStore(cfg.resolve(cfg.storage.backtests_dir)),
        inst=Instrumentation(),
        defaults=defaults,
    )

    print(f"[blue]Backtesting pipeline {pipeline_id}: {bt.start_date} -> {bt.end_date}[/blue]")
    outcome = _run_backtest(engine, bt, CancellationToken())

    if isinstance(outcome, BacktestError):
        print(f"[red]Backtest failed: {outcome.message}[/red]")
        raise typer.Exit(code=1)

    result = outcome.result
    print(_metrics_table(result.metrics))

    report_dir = out or Path(cfg.resolve(cfg.storage.backtests_dir)) / str(result.run_id) / "report"
    ReportPipeline.default(report_dir).render_all(result)
    print(f"[green]Reports written to {report_dir}[/green]")


if __name__ == "__main__":
    app()

# python -m tradeflow.cli backtest --pipeline-id 1 --start 2025-01-01 --end 2025-01-31
