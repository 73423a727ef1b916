#!filepath: tradeflow/trading/library.py
from __future__ import annotations

from tradeflow.pipeline.context import TradingContext
from tradeflow.pipeline.ports import GetPosition, TradeExecutor
from tradeflow.pipeline.registry import StepRegistry
from tradeflow.pipeline.steps import StepDefinition
from tradeflow.trading.entry import entry
from tradeflow.trading.position import check_position, position_gate
from tradeflow.trading.signals import (
    constant_signal,
    ema_signal,
    ewmac_signal,
    macd_signal,
    vwap_signal,
)


def trading_step_definitions(
    get_position: GetPosition, executor: TradeExecutor
) -> list[StepDefinition[TradingContext]]:
    """
    完整 step library，绑定给定的 position / executor capability。

    实盘与回测使用同一组 step key，只是注入的 adapter 不同。
    """
    return [
        check_position(get_position),
        position_gate(get_position),
        constant_signal(),
        ema_signal(),
        macd_signal(),
        vwap_signal(),
        ewmac_signal(),
        entry(executor),
    ]


def trading_registry(get_position: GetPosition, executor: TradeExecutor) -> StepRegistry:
    return StepRegistry.create(trading_step_definitions(get_position, executor))
