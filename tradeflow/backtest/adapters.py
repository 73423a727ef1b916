#!filepath: tradeflow/backtest/adapters.py
"""
Backtest adapters: the GetPosition / TradeExecutor capabilities bound to an
in-memory BacktestState. Step keys stay the same as in live mode.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from tradeflow import logs
from tradeflow.backtest.state import BacktestState
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import TradingAction, TradingContext
from tradeflow.pipeline.ports import PositionInfo
from tradeflow.utils.errors import PortError

# 回测里同一时刻最多一个持仓，order id 固定
BACKTEST_ORDER_ID = 1


def _candle_time(ctx: TradingContext) -> datetime:
    return ctx.simulated_time or datetime.now(timezone.utc)


class BacktestPositionAdapter:
    def __init__(self, state: BacktestState):
        self._state = state

    async def get_position(self, pipeline_id: int, token: CancellationToken) -> Optional[PositionInfo]:
        pos = self._state.current_position
        if pos is None:
            return None
        return PositionInfo(entry_price=pos.entry_price, quantity=pos.quantity, order_id=BACKTEST_ORDER_ID)


class BacktestTradeExecutor:
    """
    模拟成交：按 ctx.current_price 全额成交，无手续费、无滑点。
    """

    def __init__(self, state: BacktestState):
        self._state = state

    async def execute_buy(
        self, ctx: TradingContext, amount: float, token: CancellationToken
    ) -> tuple[TradingContext, str]:
        state = self._state
        if state.balance < amount:
            return ctx, "Insufficient balance"

        price = ctx.current_price
        if price <= 0:
            raise PortError(f"invalid price {price}")

        quantity = amount / price
        when = _candle_time(ctx)
        state.open_position(price, quantity, amount, when, ctx.execution_id)
        logs.debug(f"[Backtest] BUY qty={quantity:.8f} px={price} balance={state.balance:.4f} t={when}")

        ctx2 = replace(
            ctx,
            action=TradingAction.BUY,
            buy_price=price,
            quantity=quantity,
            active_order_id=state.trade_counter,
        )
        return ctx2, f"BUY {quantity:.8f} @ {price:.4f}"

    async def execute_sell(
        self, ctx: TradingContext, token: CancellationToken
    ) -> tuple[TradingContext, str]:
        state = self._state
        pos = state.current_position
        if pos is None:
            return ctx, "No position to sell"

        price = ctx.current_price
        when = _candle_time(ctx)
        state.close_position(price, when)
        logs.debug(f"[Backtest] SELL qty={pos.quantity:.8f} px={price} balance={state.balance:.4f} t={when}")

        ctx2 = replace(
            ctx,
            action=TradingAction.SELL,
            buy_price=None,
            quantity=None,
            active_order_id=None,
        )
        return ctx2, f"SELL {pos.quantity:.8f} @ {price:.4f}"
