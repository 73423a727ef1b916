#!filepath: tradeflow/backtest/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from tradeflow.backtest.models import BacktestTrade, OrderSide
from tradeflow.config.backtest_config import BacktestConfig


@dataclass(frozen=True)
class BacktestPosition:
    entry_price: float
    quantity: float
    entry_time: datetime
    execution_id: str


@dataclass
class BacktestState:
    """
    回测账本（每个 run 一份，run 之间不共享）

    - 只被 backtest adapters 和 engine 的强制平仓修改
    - trades 新的在前（reverse chronological）
    """
    config: BacktestConfig
    run_id: int
    balance: float
    current_position: Optional[BacktestPosition] = None
    trades: List[BacktestTrade] = field(default_factory=list)
    trade_counter: int = 0

    @classmethod
    def create(cls, run_id: int, config: BacktestConfig) -> "BacktestState":
        return cls(config=config, run_id=run_id, balance=config.initial_capital)

    # -------------------------
    # ledger ops
    # -------------------------
    def open_position(
        self, price: float, quantity: float, amount: float, when: datetime, execution_id: str
    ) -> BacktestTrade:
        # 扣减下单金额本身，不用 price * quantity 反算
        self.balance -= amount
        self.trade_counter += 1
        self.current_position = BacktestPosition(price, quantity, when, execution_id)
        return self._record(OrderSide.BUY, price, quantity, when)

    def close_position(self, price: float, when: datetime) -> BacktestTrade:
        pos = self.current_position
        if pos is None:
            raise RuntimeError("close_position called without an open position")
        self.balance += pos.quantity * price
        self.trade_counter += 1
        self.current_position = None
        return self._record(OrderSide.SELL, price, pos.quantity, when)

    def equity(self, price: float) -> float:
        """balance + 持仓按 price 盯市"""
        if self.current_position is None:
            return self.balance
        return self.balance + self.current_position.quantity * price

    def chronological_trades(self) -> List[BacktestTrade]:
        # trades 新的在前：先反转，同一 candle_time 的 Buy 才会排在强平 Sell 之前
        return sorted(reversed(self.trades), key=lambda t: t.candle_time)

    def _record(self, side: OrderSide, price: float, quantity: float, when: datetime) -> BacktestTrade:
        trade = BacktestTrade(
            run_id=self.run_id,
            side=side,
            price=price,
            quantity=quantity,
            candle_time=when,
            capital_after=self.balance,
        )
        self.trades.insert(0, trade)
        return trade
