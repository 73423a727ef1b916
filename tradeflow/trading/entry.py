#!filepath: tradeflow/trading/entry.py
from __future__ import annotations

from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import TradingAction, TradingContext
from tradeflow.pipeline.parameters import DecimalParam, ParameterDef, ParameterSchema, ValidatedParams
from tradeflow.pipeline.ports import TradeExecutor
from tradeflow.pipeline.steps import Continue, Fail, Step, StepCategory, StepDefinition
from tradeflow.utils.errors import PortError

ENTRY_STEP = "entry-step"

ENTRY_SCHEMA = ParameterSchema(
    parameters=(
        ParameterDef(
            key="tradeAmount",
            name="Trade Amount (USDT)",
            description="Amount in USDT to trade per order",
            type=DecimalParam(1.0, 100000.0),
            required=True,
            default=100.0,
            group="Order Settings",
        ),
        ParameterDef(
            key="buyThreshold",
            name="Buy Threshold",
            description="Minimum total signal weight to trigger a buy",
            type=DecimalParam(-100.0, 100.0),
            default=0.5,
            group="Thresholds",
        ),
        ParameterDef(
            key="sellThreshold",
            name="Sell Threshold",
            description="Maximum total signal weight to trigger a sell",
            type=DecimalParam(-100.0, 100.0),
            default=-0.5,
            group="Thresholds",
        ),
    )
)


def decide_action(total_weight: float, buy_threshold: float, sell_threshold: float,
                  current: TradingAction) -> TradingAction:
    if total_weight > buy_threshold:
        return TradingAction.BUY
    if total_weight < sell_threshold:
        return TradingAction.SELL
    return current


def entry(executor: TradeExecutor) -> StepDefinition[TradingContext]:
    """
    entry-step：汇总 signal 权重，决定 Buy / Sell / 不动

      (None, Buy)  -> executor.execute_buy
      (Some, Sell) -> executor.execute_sell
      其它组合      -> no-op Continue（message 带 totalWeight）
    """

    def create(params: ValidatedParams, _) -> Step[TradingContext]:
        trade_amount = params.get_decimal("tradeAmount", 100.0)
        buy_threshold = params.get_decimal("buyThreshold", 0.5)
        sell_threshold = params.get_decimal("sellThreshold", -0.5)

        async def execute(ctx: TradingContext, token: CancellationToken):
            total = ctx.total_weight
            action = decide_action(total, buy_threshold, sell_threshold, ctx.action)

            if ctx.active_order_id is None and action == TradingAction.BUY:
                try:
                    ctx2, msg = await executor.execute_buy(ctx, trade_amount, token)
                except PortError as e:
                    return Fail(f"Error placing buy order: {e}")
                return Continue(ctx2, f"{msg} (totalWeight={total:.2f})")

            if ctx.active_order_id is not None and action == TradingAction.SELL:
                try:
                    ctx2, msg = await executor.execute_sell(ctx, token)
                except PortError as e:
                    return Fail(f"Error placing sell order: {e}")
                return Continue(ctx2, f"{msg} (totalWeight={total:.2f})")

            return Continue(ctx, f"No action taken. (totalWeight={total:.2f})")

        return Step(ENTRY_STEP, execute)

    return StepDefinition(
        key=ENTRY_STEP,
        name="Entry Step",
        description="Places an entry trade based on aggregated signal weights.",
        category=StepCategory.EXECUTION,
        create=create,
        parameter_schema=ENTRY_SCHEMA,
    )
