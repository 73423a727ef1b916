#!filepath: tests/storage/test_backtest_store.py
import asyncio
from datetime import timedelta

from conftest import T0

from tradeflow.backtest.models import (
    BacktestEquityPoint,
    BacktestExecutionLog,
    BacktestStatus,
    BacktestTrade,
    OrderSide,
)
from tradeflow.config.backtest_config import BacktestConfig
from tradeflow.storage.backtests import InMemoryBacktestStore, ParquetBacktestStore


def _config():
    return BacktestConfig(pipeline_id=3, start_date=T0, end_date=T0 + timedelta(days=1))


def test_in_memory_run_ids_increment():
    store = InMemoryBacktestStore()

    a = asyncio.run(store.create_run(_config()))
    b = asyncio.run(store.create_run(_config()))

    assert (a.id, b.id) == (1, 2)
    assert a.status == BacktestStatus.PENDING


def test_parquet_store_round_trip(tmp_path):
    store = ParquetBacktestStore(tmp_path)
    run = asyncio.run(store.create_run(_config()))

    trade = BacktestTrade(run.id, OrderSide.BUY, 100.0, 1.0, T0, 900.0)
    point = BacktestEquityPoint(run.id, T0, 1000.0, 0.0)
    log = BacktestExecutionLog(run.id, "abc", "entry-step", 0, "ok", "{}", T0, T0, T0)

    asyncio.run(store.insert_trades([trade]))
    asyncio.run(store.insert_trades([BacktestTrade(run.id, OrderSide.SELL, 110.0, 1.0, T0, 1010.0)]))
    asyncio.run(store.insert_equity_points([point]))
    asyncio.run(store.insert_logs([log]))
    asyncio.run(store.insert_logs([]))

    run.status = BacktestStatus.COMPLETED
    run.final_capital = 1010.0
    asyncio.run(store.update_run(run))

    loaded = asyncio.run(store.get_run(run.id))
    assert loaded.status == BacktestStatus.COMPLETED
    assert loaded.final_capital == 1010.0
    assert loaded.start_date == T0

    trades = store.read_table(run.id, store.TRADES_FILE)
    assert list(trades["side"]) == ["BUY", "SELL"]
    assert len(store.read_table(run.id, store.EQUITY_FILE)) == 1
    assert store.read_table(run.id, store.LOGS_FILE)["step_key"].tolist() == ["entry-step"]


def test_parquet_store_next_id(tmp_path):
    store = ParquetBacktestStore(tmp_path)
    asyncio.run(store.create_run(_config()))

    assert asyncio.run(store.create_run(_config())).id == 2
    assert asyncio.run(store.get_run(99)) is None
