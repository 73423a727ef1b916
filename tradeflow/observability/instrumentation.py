#!filepath: tradeflow/observability/instrumentation.py
"""
Backtest run instrumentation.

- phase timeline : wall time per BacktestPhase, in execution order
- ReplayProgress : bar / execution counters and throttled progress log lines
- summary        : run-level numbers (bars / trades / sharpe ...)

Nothing here logs on the per-bar hot path except the throttled progress line.
"""
from __future__ import annotations

import time
from collections import OrderedDict
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict

from tradeflow import logs


class BacktestPhase(str, Enum):
    LOAD_PIPELINE = "load_pipeline"
    LOAD_CANDLES = "load_candles"
    REPLAY = "replay"
    METRICS = "metrics"
    PERSIST = "persist"


class ReplayProgress:
    """
    回放进度：每 every 根 bar 打一行（最后一根必打），带 bars/s
    """

    def __init__(self, enabled: bool = True, every: int = 1000):
        self.enabled = enabled
        self.every = max(1, every)
        self.total = 0
        self.bars = 0
        self.executions = 0
        self._started = 0.0

    def start(self, total: int):
        self.total = total
        self.bars = 0
        self.executions = 0
        self._started = time.perf_counter()
        if self.enabled:
            logs.info(f"[Replay] started total={total} bars")

    def bar(self, executed: bool):
        self.bars += 1
        if executed:
            self.executions += 1

        if not self.enabled:
            return
        if self.bars % self.every != 0 and self.bars != self.total:
            return

        pct = 100.0 * self.bars / self.total if self.total else 100.0
        logs.info(
            f"[Replay] {self.bars}/{self.total} bars ({pct:.1f}%) "
            f"executions={self.executions} {self.bars_per_second():.0f} bars/s"
        )

    def bars_per_second(self) -> float:
        elapsed = time.perf_counter() - self._started
        return self.bars / elapsed if elapsed > 0 else 0.0

    def done(self):
        if self.enabled:
            logs.info(f"[Replay] done bars={self.bars}/{self.total} executions={self.executions}")


@contextmanager
def _no_phase():
    yield


class Instrumentation:
    """
    Instrumentation（每个 BacktestEngine 一份）

    用法：
        with inst.phase(BacktestPhase.REPLAY):
            ...
        inst.record("trades", 3)
        inst.report("backtest run=1")
    """

    def __init__(self, enabled: bool = True, progress_every: int = 1000):
        self.enabled = enabled
        self.progress = ReplayProgress(enabled=enabled, every=progress_every)
        self.timeline: Dict[BacktestPhase, float] = OrderedDict()
        self.summary: Dict[str, Any] = {}

    def phase(self, phase: BacktestPhase):
        if not self.enabled:
            return _no_phase()
        return self._timed(phase)

    @contextmanager
    def _timed(self, phase: BacktestPhase):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timeline[phase] = time.perf_counter() - start

    def record(self, name: str, value: Any):
        if self.enabled:
            self.summary[name] = value

    def report(self, label: str):
        if not self.enabled:
            return

        logs.info(f"[Timeline] ===== Run timeline for {label} =====")
        total = sum(self.timeline.values())
        for phase, sec in self.timeline.items():
            share = 100.0 * sec / total if total > 0 else 0.0
            logs.info(f"[Timeline] {phase.value:<16} {sec:>8.3f}s {share:>5.1f}%")
        logs.info(f"[Timeline] {'total':<16} {total:>8.3f}s")

        if self.summary:
            logs.info("[Timeline] " + " ".join(f"{k}={v}" for k, v in self.summary.items()))


class NoOpInstrumentation(Instrumentation):
    """Instrumentation disabled（接口同构）"""

    def __init__(self):
        super().__init__(enabled=False)
