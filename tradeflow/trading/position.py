#!filepath: tradeflow/trading/position.py
from __future__ import annotations

from dataclasses import replace

from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import TradingAction, TradingContext
from tradeflow.pipeline.parameters import ValidatedParams
from tradeflow.pipeline.ports import GetPosition
from tradeflow.pipeline.steps import Continue, Fail, Step, StepCategory, StepDefinition, Stop
from tradeflow.utils.errors import PortError

CHECK_POSITION = "check-position"
POSITION_GATE = "position-gate-step"


def check_position(positions: GetPosition) -> StepDefinition[TradingContext]:
    """
    check-position：查询当前持仓

      - 有持仓 -> Hold，带上 buy_price / quantity / active_order_id
      - 无持仓 -> NoAction（正常 Continue，不是错误）
    """

    def create(_: ValidatedParams, __) -> Step[TradingContext]:
        async def execute(ctx: TradingContext, token: CancellationToken):
            try:
                pos = await positions.get_position(ctx.pipeline_id, token)
            except PortError as e:
                return Fail(f"Error retrieving position: {e}")

            if pos is None:
                return Continue(ctx.with_action(TradingAction.NO_ACTION), "No open position")

            ctx2 = replace(
                ctx,
                buy_price=pos.entry_price,
                quantity=pos.quantity,
                active_order_id=pos.order_id,
                action=TradingAction.HOLD,
            )
            return Continue(ctx2, f"Position found - Entry: {pos.entry_price:.8f}")

        return Step(CHECK_POSITION, execute)

    return StepDefinition(
        key=CHECK_POSITION,
        name="Check Position",
        description="Checks if there is an open position for this pipeline.",
        category=StepCategory.VALIDATION,
        create=create,
    )


def position_gate(positions: GetPosition) -> StepDefinition[TradingContext]:
    """
    position-gate：防止重复开仓

    只在 (没有 active order, NoAction) 时查询持仓；已有持仓则写入
    active_order_id，后面的 entry step 就不会再买。
    """

    def create(_: ValidatedParams, __) -> Step[TradingContext]:
        async def execute(ctx: TradingContext, token: CancellationToken):
            if ctx.active_order_id is not None or ctx.action != TradingAction.NO_ACTION:
                return Continue(ctx, "Already have an active order or action in progress")

            try:
                pos = await positions.get_position(ctx.pipeline_id, token)
            except PortError as e:
                return Stop(f"Error retrieving position: {e}")

            if pos is not None:
                return Continue(
                    replace(ctx, active_order_id=pos.order_id),
                    "Open position exists, setting action to Hold",
                )
            return Continue(ctx, "No active orders or positions, ready to place entry order.")

        return Step(POSITION_GATE, execute)

    return StepDefinition(
        key=POSITION_GATE,
        name="Position Gate Step",
        description="Determines if an entry trade should be placed based on existing positions and orders.",
        category=StepCategory.VALIDATION,
        create=create,
    )
