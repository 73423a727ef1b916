#!filepath: tradeflow/storage/pipelines.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from tradeflow import logs
from tradeflow.pipeline.builder import PipelineStepConfig
from tradeflow.pipeline.context import MarketType
from tradeflow.utils.errors import PortError, UserInputError


@dataclass(frozen=True)
class Pipeline:
    id: int
    name: str
    instrument: str
    market_type: MarketType
    enabled: bool = True
    steps: List[PipelineStepConfig] = field(default_factory=list)


class InMemoryPipelineRepository:
    def __init__(self, pipelines: Iterable[Pipeline] = ()):
        self._pipelines: Dict[int, Pipeline] = {p.id: p for p in pipelines}

    def add(self, pipeline: Pipeline) -> None:
        self._pipelines[pipeline.id] = pipeline

    async def get_by_id(self, pipeline_id: int) -> Optional[Pipeline]:
        return self._pipelines.get(pipeline_id)

    def all(self) -> List[Pipeline]:
        return sorted(self._pipelines.values(), key=lambda p: p.id)


# -------------------------
# YAML file format
# -------------------------
class StepModel(BaseModel):
    key: str
    order: int
    enabled: bool = True
    parameters: Dict[str, str] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def _stringify(cls, v):
        # YAML 里写 100 / true 也按原始字符串保存，由 step schema 负责解析
        if v is None:
            return {}
        return {str(k): str(val).lower() if isinstance(val, bool) else str(val) for k, val in v.items()}


class PipelineModel(BaseModel):
    id: int
    name: str
    instrument: str
    market_type: MarketType
    enabled: bool = True
    steps: List[StepModel] = Field(default_factory=list)

    def to_pipeline(self) -> Pipeline:
        return Pipeline(
            id=self.id,
            name=self.name,
            instrument=self.instrument,
            market_type=self.market_type,
            enabled=self.enabled,
            steps=[
                PipelineStepConfig(
                    step_type_key=s.key,
                    order=s.order,
                    enabled=s.enabled,
                    parameters=dict(s.parameters),
                )
                for s in self.steps
            ],
        )


class PipelinesFile(BaseModel):
    pipelines: List[PipelineModel] = Field(default_factory=list)


class YamlPipelineRepository(InMemoryPipelineRepository):
    """
    pipelines.yml:

        pipelines:
          - id: 1
            name: btc-ema
            instrument: BTC-USDT
            market_type: okx
            steps:
              - key: check-position
                order: 1
              - key: ema-signal
                order: 2
                parameters: {fastPeriod: 9, slowPeriod: 21}
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._read())

    def _read(self) -> List[Pipeline]:
        if not self.path.exists():
            raise UserInputError(f"Pipelines file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PortError(f"failed to read pipelines from {self.path}: {e}") from e

        try:
            parsed = PipelinesFile.model_validate(raw)
        except ValidationError as e:
            raise UserInputError(f"Invalid pipelines file {self.path}: {e}") from e

        pipelines = [m.to_pipeline() for m in parsed.pipelines]
        logs.info(f"[Pipelines] loaded {len(pipelines)} pipelines from {self.path}")
        return pipelines
