#!filepath: tradeflow/pipeline/builder.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, TypeVar

from tradeflow import logs
from tradeflow.pipeline.parameters import validate
from tradeflow.pipeline.registry import StepRegistry
from tradeflow.pipeline.steps import Step
from tradeflow.utils.errors import ParameterValidationError, StepBuildError

C = TypeVar("C")


@dataclass(frozen=True)
class PipelineStepConfig:
    """一个 pipeline 里某个 step 的配置（raw string 参数）"""
    step_type_key: str
    order: int
    enabled: bool = True
    parameters: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BuildError:
    step_key: str
    message: str


def build_steps(
    registry: StepRegistry[C],
    services: Any,
    configs: Iterable[PipelineStepConfig],
) -> list[Step[C]]:
    """
    configs -> 可执行 Step 列表

    规则：
      - disabled 的 step 直接跳过
      - 按 order 升序
      - 未注册 key / 参数非法 / create 抛错 都收集为 BuildError
      - 只要有一个 BuildError 就抛 StepBuildError（全部错误一起报告）
    """
    steps: list[Step[C]] = []
    errors: list[BuildError] = []

    enabled = sorted((c for c in configs if c.enabled), key=lambda c: c.order)

    for cfg in enabled:
        definition = registry.try_find(cfg.step_type_key)
        if definition is None:
            errors.append(BuildError(cfg.step_type_key, "unknown step type"))
            continue

        try:
            params = validate(definition.parameter_schema, cfg.parameters)
        except ParameterValidationError as e:
            errors.append(BuildError(cfg.step_type_key, str(e)))
            continue

        try:
            steps.append(definition.create(params, services))
        except Exception as e:
            logs.exception(f"[Builder] create failed for {cfg.step_type_key}")
            errors.append(BuildError(cfg.step_type_key, f"create failed: {e}"))

    if errors:
        raise StepBuildError(errors)

    logs.debug(f"[Builder] built steps={[s.key for s in steps]}")
    return steps
