#!filepath: tradeflow/trading/indicators.py
"""
Signal indicators over close / typical price series.

Inputs are plain sequences (oldest first); outputs are lists so signal steps
can index [-1] / [-2] directly. Math is done with pandas / numpy.
"""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd


def ema_series(period: int, series: Sequence[float]) -> list[float]:
    """
    EMA 序列，以前 period 个值的 SMA 作为种子。
    返回长度 = len(series) - period + 1；数据不足返回 []
    """
    if period <= 0 or len(series) < period:
        return []

    s = pd.Series(series, dtype=float)
    seeded = pd.concat([pd.Series([s.iloc[:period].mean()]), s.iloc[period:]], ignore_index=True)
    # adjust=False: y_t = k * x_t + (1 - k) * y_{t-1}, k = 2 / (period + 1)
    return seeded.ewm(span=period, adjust=False).mean().tolist()


def std_dev(series: Sequence[float]) -> Optional[float]:
    """总体标准差；少于 2 个值返回 None"""
    if len(series) < 2:
        return None
    return float(np.std(np.asarray(series, dtype=float)))


def rolling_std_dev(window: int, series: Sequence[float]) -> list[float]:
    if window <= 1 or len(series) < window:
        return []
    s = pd.Series(series, dtype=float)
    return s.rolling(window, min_periods=window).std(ddof=0).iloc[window - 1:].tolist()


def returns(series: Sequence[float]) -> list[float]:
    """简单收益率；前值为 0 时记 0"""
    s = pd.Series(series, dtype=float)
    prev = s.shift(1)
    r = (s.diff() / prev).where(prev != 0, 0.0)
    return r.iloc[1:].tolist()


def vwap(data: Sequence[tuple[float, float]]) -> Optional[float]:
    """data: [(typical_price, volume)]；总成交量为 0 返回 None"""
    if not data:
        return None
    arr = np.asarray(data, dtype=float)
    total_volume = arr[:, 1].sum()
    if total_volume == 0:
        return None
    return float(np.dot(arr[:, 0], arr[:, 1]) / total_volume)


def crossover_direction(
    fast_prev: float, fast_curr: float, slow_prev: float, slow_curr: float
) -> float:
    """上穿 +1，下穿 -1，否则 0"""
    if fast_prev <= slow_prev and fast_curr > slow_curr:
        return 1.0
    if fast_prev >= slow_prev and fast_curr < slow_curr:
        return -1.0
    return 0.0


def direction_label(direction: float) -> str:
    if direction > 0:
        return "BUY"
    if direction < 0:
        return "SELL"
    return "NEUTRAL"
