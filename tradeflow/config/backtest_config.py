#!filepath: tradeflow/config/backtest_config.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from tradeflow.utils.datetime_utils import as_utc


class BacktestDefaults(BaseModel):
    """
    回测引擎常量（可由 base.yml 覆盖）
    """
    max_equity_points: int = Field(500, ge=2)
    periods_per_year: int = 365
    candle_timeframe: str = "1m"
    interval_minutes: int = 5
    initial_capital: float = 1000.0


class BacktestConfig(BaseModel):
    """
    BacktestConfig（FROZEN）

    语义：
      - 一次回测 run 的“实验定义”
      - pipeline 决定 instrument / market / steps
      - [start_date, end_date] 闭区间
    """

    model_config = {"frozen": True}

    pipeline_id: int
    start_date: datetime
    end_date: datetime
    interval_minutes: int = Field(5, ge=1)
    initial_capital: float = Field(1000.0, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        # candle 时间戳都是 UTC aware；naive 输入按 UTC 处理
        return as_utc(v)

    @model_validator(mode="after")
    def _check_range(self) -> "BacktestConfig":
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )
        return self
