#!filepath: tests/observability/test_instrumentation.py

import time

import pytest
from loguru import logger

from tradeflow.observability.instrumentation import (
    BacktestPhase,
    Instrumentation,
    NoOpInstrumentation,
    ReplayProgress,
)


@pytest.fixture
def captured():
    lines = []
    sink_id = logger.add(lambda msg: lines.append(str(msg)))
    yield lines
    logger.remove(sink_id)


def test_phase_timeline_keeps_execution_order():
    inst = Instrumentation(enabled=True)

    with inst.phase(BacktestPhase.LOAD_CANDLES):
        time.sleep(0.005)
    with inst.phase(BacktestPhase.REPLAY):
        pass

    assert list(inst.timeline) == [BacktestPhase.LOAD_CANDLES, BacktestPhase.REPLAY]
    assert inst.timeline[BacktestPhase.LOAD_CANDLES] > 0


def test_phase_is_recorded_when_body_raises():
    inst = Instrumentation(enabled=True)

    with pytest.raises(RuntimeError):
        with inst.phase(BacktestPhase.PERSIST):
            raise RuntimeError("boom")

    assert BacktestPhase.PERSIST in inst.timeline


def test_report_lists_phases_and_summary(captured):
    inst = Instrumentation(enabled=True)
    with inst.phase(BacktestPhase.METRICS):
        pass
    inst.record("trades", 2)

    inst.report("backtest run=1")

    output = "\n".join(captured)
    assert "Run timeline for backtest run=1" in output
    assert "metrics" in output
    assert "trades=2" in output


def test_replay_progress_is_throttled(captured):
    progress = ReplayProgress(enabled=True, every=10)
    progress.start(25)
    for i in range(25):
        progress.bar(executed=i % 5 == 0)
    progress.done()

    updates = [line for line in captured if "/25 bars (" in line]
    assert len(updates) == 3  # 10, 20, 25
    assert progress.bars == 25
    assert progress.executions == 5


def test_noop_instrumentation(captured):
    inst = NoOpInstrumentation()

    with inst.phase(BacktestPhase.REPLAY):
        pass
    inst.record("x", 1)
    inst.progress.start(3)
    inst.progress.bar(executed=True)
    inst.report("x")

    assert inst.timeline == {}
    assert inst.summary == {}
    assert inst.progress.executions == 1
    assert captured == []
