#!filepath: tradeflow/backtest/equity.py
from __future__ import annotations

import math
from datetime import datetime
from typing import List, Sequence, Tuple

import numpy as np

from tradeflow.backtest.models import BacktestEquityPoint

MAX_EQUITY_POINTS = 500

EquitySample = Tuple[datetime, float]


def downsample(samples: Sequence[EquitySample], max_points: int = MAX_EQUITY_POINTS) -> List[EquitySample]:
    """
    每 stride 个取一个（stride = ceil(n / max_points)），
    最后一个保留点替换为原始最后一点：首尾都保留，且数量 <= max_points
    """
    n = len(samples)
    if n <= max_points:
        return list(samples)

    stride = max(1, math.ceil(n / max_points))
    kept = list(samples[::stride])
    kept[-1] = samples[-1]
    return kept


def drawdowns(equity: Sequence[float]) -> List[float]:
    """每个点相对此前（含自身）running peak 的回撤比例；peak <= 0 记 0"""
    if len(equity) == 0:
        return []
    eq = np.asarray(equity, dtype=float)
    peaks = np.maximum.accumulate(eq)
    safe = np.where(peaks > 0, peaks, 1.0)
    return np.where(peaks > 0, (peaks - eq) / safe, 0.0).tolist()


def sample_equity_points(
    run_id: int,
    samples: Sequence[EquitySample],
    max_points: int = MAX_EQUITY_POINTS,
) -> List[BacktestEquityPoint]:
    kept = downsample(samples, max_points)
    dd = drawdowns([equity for _, equity in kept])
    return [
        BacktestEquityPoint(run_id=run_id, candle_time=when, equity=equity, drawdown=d)
        for (when, equity), d in zip(kept, dd)
    ]
