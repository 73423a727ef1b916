#!filepath: tradeflow/pipeline/runner.py
from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from tradeflow import logs
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.execution_log import ExecutionLog, LogSink, StepOutcome, utcnow
from tradeflow.pipeline.steps import Continue, Fail, Step, StepResult, Stop

C = TypeVar("C")

CANCELLED = "Cancelled"
STARTED = "Started"


def _outcome_of(result: StepResult) -> StepOutcome:
    if isinstance(result, Continue):
        return StepOutcome.SUCCESS
    if isinstance(result, Stop):
        return StepOutcome.STOPPED
    return StepOutcome.FAILED


async def run(
    pipeline_id: int,
    execution_id: str,
    serialize_context: Callable[[C], str],
    log_step: LogSink,
    steps: Sequence[Step[C]],
    ctx: C,
    token: CancellationToken,
) -> StepResult[C]:
    """
    Runner：按顺序执行 steps（唯一的控制流解释器）

    规则：
      - 开始前已取消 -> Stop("Cancelled")，不执行、不写 log
      - steps 为空   -> Continue(ctx, "Started")
      - 每个 step 执行前检查取消；已取消 -> Stop("Cancelled")，未执行的 step 不写 log
      - 每个执行过的 step 恰好一条 ExecutionLog
      - Continue 采用新 ctx；Stop / Fail 立即返回
      - 全部 Continue -> 返回最后一个 step 的 Continue
    """
    if token.is_cancelled:
        return Stop(CANCELLED)

    result: StepResult[C] = Continue(ctx, STARTED)
    current = ctx

    for step in steps:
        if token.is_cancelled:
            logs.debug(f"[Runner] pipeline={pipeline_id} exec={execution_id} cancelled before {step.key}")
            return Stop(CANCELLED)

        start = utcnow()
        result = await step.execute(current, token)
        end = utcnow()

        if isinstance(result, Continue):
            current = result.context

        log_step(
            ExecutionLog(
                pipeline_id=pipeline_id,
                execution_id=execution_id,
                step_key=step.key,
                outcome=_outcome_of(result),
                message=result.message,
                context_snapshot=serialize_context(current),
                start_time=start,
                end_time=end,
            )
        )

        logs.debug(
            f"[Runner] pipeline={pipeline_id} exec={execution_id} "
            f"step={step.key} outcome={_outcome_of(result).name} msg={result.message}"
        )

        if isinstance(result, (Stop, Fail)):
            return result

    return result
