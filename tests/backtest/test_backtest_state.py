#!filepath: tests/backtest/test_backtest_state.py
import asyncio
from datetime import datetime, timezone

import pytest

from tradeflow.backtest.adapters import BacktestPositionAdapter, BacktestTradeExecutor
from tradeflow.backtest.models import OrderSide
from tradeflow.backtest.state import BacktestState
from tradeflow.config.backtest_config import BacktestConfig
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import MarketType, TradingAction, TradingContext

T = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def state() -> BacktestState:
    config = BacktestConfig(
        pipeline_id=1,
        start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2025, 1, 2, tzinfo=timezone.utc),
        initial_capital=1000.0,
    )
    return BacktestState.create(run_id=9, config=config)


def _ctx(price: float) -> TradingContext:
    return TradingContext.empty(1, "BTC-USDT", MarketType.OKX).with_price(price).with_simulated_time(T)


def _buy(state, ctx, amount):
    return asyncio.run(BacktestTradeExecutor(state).execute_buy(ctx, amount, CancellationToken()))


def _sell(state, ctx):
    return asyncio.run(BacktestTradeExecutor(state).execute_sell(ctx, CancellationToken()))


def test_buy_debits_balance_and_opens_position(state):
    ctx, msg = _buy(state, _ctx(50.0), 100.0)

    assert state.balance == pytest.approx(900.0)
    assert state.current_position.quantity == pytest.approx(2.0)
    assert state.current_position.entry_time == T
    assert state.trade_counter == 1
    assert msg == "BUY 2.00000000 @ 50.0000"

    trade = state.trades[0]
    assert trade.side == OrderSide.BUY
    assert trade.capital_after == pytest.approx(900.0)
    assert trade.run_id == 9
    assert trade.fee == 0.0

    assert ctx.action == TradingAction.BUY
    assert ctx.quantity == pytest.approx(2.0)
    assert ctx.active_order_id == 1


def test_buy_with_insufficient_balance_is_untouched(state):
    before = _ctx(50.0)

    ctx, msg = _buy(state, before, 5000.0)

    assert msg == "Insufficient balance"
    assert ctx is before
    assert state.balance == 1000.0
    assert state.trades == []
    assert state.current_position is None


def test_sell_without_position(state):
    before = _ctx(50.0)

    ctx, msg = _sell(state, before)

    assert msg == "No position to sell"
    assert ctx is before
    assert state.trade_counter == 0


def test_round_trip_credits_proceeds(state):
    _buy(state, _ctx(50.0), 100.0)
    ctx, msg = _sell(state, _ctx(60.0))

    assert state.balance == pytest.approx(1020.0)
    assert state.current_position is None
    assert state.trade_counter == 2
    assert msg == "SELL 2.00000000 @ 60.0000"
    # newest first
    assert [t.side for t in state.trades] == [OrderSide.SELL, OrderSide.BUY]
    assert ctx.action == TradingAction.SELL
    assert ctx.active_order_id is None
    assert ctx.quantity is None


def test_position_adapter(state):
    adapter = BacktestPositionAdapter(state)
    assert asyncio.run(adapter.get_position(1, CancellationToken())) is None

    _buy(state, _ctx(50.0), 100.0)
    pos = asyncio.run(adapter.get_position(1, CancellationToken()))

    assert pos.order_id == 1
    assert pos.entry_price == 50.0
    assert pos.quantity == pytest.approx(2.0)


def test_equity_marks_to_market(state):
    _buy(state, _ctx(50.0), 100.0)

    assert state.equity(55.0) == pytest.approx(900.0 + 2.0 * 55.0)


def test_buy_debits_exact_trade_amount(state):
    _buy(state, _ctx(7.3), 100.0)

    assert state.balance == 1000.0 - 100.0
    assert state.trades[0].capital_after == 900.0


def test_chronological_trades_keep_buy_before_sell_on_same_candle(state):
    _buy(state, _ctx(50.0), 100.0)
    state.close_position(50.0, T)

    sides = [t.side for t in state.chronological_trades()]

    assert sides == [OrderSide.BUY, OrderSide.SELL]
    # ledger itself stays newest first
    assert [t.side for t in state.trades] == [OrderSide.SELL, OrderSide.BUY]
