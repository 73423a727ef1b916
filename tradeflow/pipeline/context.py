#!filepath: tradeflow/pipeline/context.py
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional


class MarketType(str, Enum):
    OKX = "okx"
    BINANCE = "binance"
    IBKR = "ibkr"


class TradingAction(str, Enum):
    NO_ACTION = "NoAction"
    HOLD = "Hold"
    BUY = "Buy"
    SELL = "Sell"


def new_execution_id() -> str:
    # 12 个 hex 字符足够在 log 里区分一次执行
    return uuid.uuid4().hex[-12:]


@dataclass(frozen=True)
class TradingContext:
    """
    TradingContext（FROZEN）

    Step 之间唯一通信载体：
      - step 收到 ctx，返回新的 ctx（dataclasses.replace）
      - 同一次 run 内不共享可变状态
      - simulated_time: 回测注入的 bar 时间；实盘为 None
    """

    pipeline_id: int
    instrument: str
    market_type: MarketType
    execution_id: str = field(default_factory=new_execution_id)
    current_price: float = 0.0
    action: TradingAction = TradingAction.NO_ACTION
    buy_price: Optional[float] = None
    quantity: Optional[float] = None
    active_order_id: Optional[int] = None
    signal_weights: Mapping[str, float] = field(default_factory=dict)
    simulated_time: Optional[datetime] = None

    # -------------------------
    # builders
    # -------------------------
    @classmethod
    def empty(cls, pipeline_id: int, instrument: str, market_type: MarketType) -> "TradingContext":
        return cls(pipeline_id=pipeline_id, instrument=instrument, market_type=market_type)

    def with_action(self, action: TradingAction) -> "TradingContext":
        return replace(self, action=action)

    def with_price(self, price: float) -> "TradingContext":
        return replace(self, current_price=price)

    def with_simulated_time(self, when: datetime) -> "TradingContext":
        return replace(self, simulated_time=when)

    def with_signal_weight(self, name: str, weight: float) -> "TradingContext":
        weights = dict(self.signal_weights)
        weights[name] = weight
        return replace(self, signal_weights=weights)

    def holding(self) -> bool:
        """已有订单且处于 Hold：signal step 不再产生新权重"""
        return self.active_order_id is not None and self.action == TradingAction.HOLD

    @property
    def total_weight(self) -> float:
        return float(sum(self.signal_weights.values()))


def serialize_for_log(ctx: TradingContext) -> str:
    """ExecutionLog.context_snapshot 使用的紧凑 JSON"""
    snapshot = {
        "Action": ctx.action.value,
        "BuyPrice": ctx.buy_price,
        "Quantity": ctx.quantity,
        "ActiveOrderId": ctx.active_order_id,
        "CurrentPrice": ctx.current_price,
        "SignalWeights": dict(ctx.signal_weights),
    }
    return json.dumps(snapshot, separators=(",", ":"))
