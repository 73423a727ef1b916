#!filepath: tradeflow/pipeline/steps.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.parameters import ParameterSchema, ValidatedParams

C = TypeVar("C")


# -------------------------
# StepResult（三态）
# -------------------------
@dataclass(frozen=True)
class Continue(Generic[C]):
    """进入下一个 step，携带更新后的 context。"""
    context: C
    message: str


@dataclass(frozen=True)
class Stop:
    """正常终止（没有事情可做 / 主动短路），不是错误。"""
    message: str


@dataclass(frozen=True)
class Fail:
    """终止并标记错误。"""
    message: str


StepResult = Union[Continue[C], Stop, Fail]


# -------------------------
# Step
# -------------------------
StepFn = Callable[[C, CancellationToken], Awaitable["StepResult[C]"]]


@dataclass(frozen=True)
class Step(Generic[C]):
    """
    Step（FROZEN）

    - key     : step type key（写入 ExecutionLog）
    - execute : async (ctx, token) -> StepResult

    Step 本身无状态；状态只存在于 context 或闭包里的 collaborator。
    """
    key: str
    execute: StepFn

    async def __call__(self, ctx: C, token: CancellationToken) -> StepResult[C]:
        return await self.execute(ctx, token)


class StepCategory(str, Enum):
    VALIDATION = "validation"
    SIGNAL = "signal"
    EXECUTION = "execution"


@dataclass(frozen=True)
class StepDefinition(Generic[C]):
    """
    StepDefinition = 注册表里的“step 类型”

    create(params, services) -> Step
      - params   : 已按 parameter_schema 校验过的参数
      - services : collaborator provider（candle source 等）
    """
    key: str
    name: str
    description: str
    category: StepCategory
    create: Callable[[ValidatedParams, Any], Step[C]]
    parameter_schema: ParameterSchema = field(default_factory=ParameterSchema)
