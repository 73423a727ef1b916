#!filepath: tradeflow/pipeline/ports.py
"""
Ports (FROZEN)

Capabilities the step library consumes. Live mode binds them to
database / exchange implementations, backtest mode binds them to the
in-memory ledger adapters. Step type keys never change between modes.

Contract:
- success returns a value (or `(ctx, message)` for order execution)
- collaborator failure raises PortError; steps turn it into Fail
- "nothing to do" is NOT an error (None / explanatory message)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import MarketType, TradingContext


@dataclass(frozen=True)
class PositionInfo:
    entry_price: float
    quantity: float
    order_id: int


@dataclass(frozen=True)
class Candle:
    instrument: str
    market_type: MarketType
    timeframe: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class GetPosition(Protocol):
    async def get_position(
        self, pipeline_id: int, token: CancellationToken
    ) -> Optional[PositionInfo]:
        ...


class TradeExecutor(Protocol):
    async def execute_buy(
        self, ctx: TradingContext, amount: float, token: CancellationToken
    ) -> tuple[TradingContext, str]:
        ...

    async def execute_sell(
        self, ctx: TradingContext, token: CancellationToken
    ) -> tuple[TradingContext, str]:
        ...


class CandleSource(Protocol):
    async def query(
        self,
        instrument: str,
        market_type: MarketType,
        timeframe: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> Sequence[Candle]:
        """
        升序返回 [from_date, to_date] 内的 bar；
        limit 只保留最近的 N 根。
        """
        ...


@dataclass(frozen=True)
class StepServices:
    """StepDefinition.create 拿到的 collaborator provider"""
    candle_source: Optional[CandleSource] = None
