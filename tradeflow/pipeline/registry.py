#!filepath: tradeflow/pipeline/registry.py
from __future__ import annotations

from typing import Dict, Generic, Iterable, Optional, TypeVar

from tradeflow.pipeline.steps import StepDefinition

C = TypeVar("C")


class StepRegistry(Generic[C]):
    """
    StepRegistry（FROZEN）

    step type key -> StepDefinition

    - 注册是显式的（由 trading_step_definitions 统一列出）
    - 同一个 key 重复注册：后注册的覆盖先注册的
    - 回测与实盘用同一组 key，只是 definition 绑定的 collaborator 不同
    """

    def __init__(self) -> None:
        self._defs: Dict[str, StepDefinition[C]] = {}

    @classmethod
    def create(cls, definitions: Iterable[StepDefinition[C]]) -> "StepRegistry[C]":
        reg: StepRegistry[C] = cls()
        for d in definitions:
            reg.register(d)
        return reg

    def register(self, definition: StepDefinition[C]) -> "StepRegistry[C]":
        self._defs[definition.key] = definition
        return self

    def try_find(self, key: str) -> Optional[StepDefinition[C]]:
        return self._defs.get(key)

    def all(self) -> list[StepDefinition[C]]:
        return list(self._defs.values())

    def __contains__(self, key: str) -> bool:
        return key in self._defs

    def __len__(self) -> int:
        return len(self._defs)
