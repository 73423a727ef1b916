#!filepath: tradeflow/pipeline/execution_log.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Callable


class StepOutcome(IntEnum):
    SUCCESS = 0
    STOPPED = 1
    FAILED = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecutionLog:
    """
    一次 step 调用 = 一条 ExecutionLog

    execution_id 把同一次 run 的所有 step 串起来。
    """
    pipeline_id: int
    execution_id: str
    step_key: str
    outcome: StepOutcome = StepOutcome.SUCCESS
    message: str = ""
    context_snapshot: str = "{}"
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime = field(default_factory=utcnow)

    def at(self, when: datetime) -> "ExecutionLog":
        """start/end 都压到同一时刻（回测按 bar 粒度记录）"""
        return replace(self, start_time=when, end_time=when)


LogSink = Callable[[ExecutionLog], None]


class ExecutionLogBuffer:
    """
    内存 log sink：收集全部 log，run 结束后一次性持久化。
    """

    def __init__(self) -> None:
        self.logs: list[ExecutionLog] = []

    def __call__(self, log: ExecutionLog) -> None:
        self.logs.append(log)

    def __len__(self) -> int:
        return len(self.logs)

    def stamped(self, when: datetime) -> LogSink:
        """返回一个把 log 时间戳改写为 when 的 sink"""
        def _sink(log: ExecutionLog) -> None:
            self.logs.append(log.at(when))
        return _sink
