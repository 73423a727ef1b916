#!filepath: tradeflow/backtest/metrics.py
"""
Metrics are pure functions of (initial_capital, trades, equity_points).
They never affect the replay and never produce NaN / Inf.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Sequence

import numpy as np

from tradeflow.backtest.models import BacktestEquityPoint, BacktestMetrics, BacktestTrade

PERIODS_PER_YEAR = 365


@dataclass(frozen=True)
class TradePair:
    """一次 round trip：按时间排序后相邻两笔成交"""
    entry: BacktestTrade
    exit: BacktestTrade

    @property
    def pnl(self) -> float:
        return (self.exit.price - self.entry.price) * self.exit.quantity

    @property
    def pnl_pct(self) -> float:
        if self.entry.price == 0:
            return 0.0
        return (self.exit.price - self.entry.price) / self.entry.price * 100.0

    @property
    def is_win(self) -> bool:
        return self.exit.price > self.entry.price

    @property
    def holding(self) -> timedelta:
        return self.exit.candle_time - self.entry.candle_time


def build_trade_pairs(trades: Sequence[BacktestTrade]) -> List[TradePair]:
    """按 candle_time 排序，两两成对；末尾落单的一笔忽略"""
    ordered = sorted(trades, key=lambda t: t.candle_time)
    return [
        TradePair(ordered[i], ordered[i + 1])
        for i in range(0, len(ordered) - 1, 2)
    ]


def max_drawdown_pct(equity: Sequence[float]) -> float:
    """running peak 回撤的最大值（百分比）；peak <= 0 的点记 0"""
    if len(equity) == 0:
        return 0.0
    eq = np.asarray(equity, dtype=float)
    peaks = np.maximum.accumulate(eq)
    safe = np.where(peaks > 0, peaks, 1.0)
    dd = np.where(peaks > 0, (peaks - eq) / safe * 100.0, 0.0)
    return float(max(dd.max(), 0.0))


def sharpe_ratio(equity: Sequence[float], periods_per_year: int = PERIODS_PER_YEAR) -> float:
    """
    mean / pstdev × sqrt(periods_per_year)

    少于 2 个点或 σ = 0 返回 0；前值 <= 0 的收益记 0
    """
    if len(equity) < 2:
        return 0.0
    eq = np.asarray(equity, dtype=float)
    prev, curr = eq[:-1], eq[1:]
    safe = np.where(prev > 0, prev, 1.0)
    ret = np.where(prev > 0, (curr - prev) / safe, 0.0)

    std = float(np.std(ret))
    if std == 0.0:
        return 0.0
    value = float(np.mean(ret)) / std * math.sqrt(periods_per_year)
    return value if math.isfinite(value) else 0.0


def calculate(
    initial_capital: float,
    trades: Sequence[BacktestTrade],
    equity_points: Sequence[BacktestEquityPoint],
    periods_per_year: int = PERIODS_PER_YEAR,
) -> BacktestMetrics:
    pairs = build_trade_pairs(trades)

    win_pnls = [p.pnl for p in pairs if p.is_win]
    loss_pnls = [p.pnl for p in pairs if not p.is_win]

    equity = [ep.equity for ep in equity_points]
    final_capital = equity[-1] if equity else initial_capital

    gross_profit = max(sum(win_pnls), 0.0)
    gross_loss = abs(sum(loss_pnls))

    if pairs:
        avg_seconds = sum(p.holding.total_seconds() for p in pairs) / len(pairs)
        avg_holding = timedelta(seconds=avg_seconds)
    else:
        avg_holding = timedelta(0)

    return BacktestMetrics(
        total_return=(
            (final_capital - initial_capital) / initial_capital * 100.0
            if initial_capital > 0 else 0.0
        ),
        final_capital=final_capital,
        total_trades=len(pairs),
        winning_trades=len(win_pnls),
        losing_trades=len(loss_pnls),
        win_rate=len(win_pnls) / len(pairs) * 100.0 if pairs else 0.0,
        average_win=sum(win_pnls) / len(win_pnls) if win_pnls else 0.0,
        average_loss=sum(loss_pnls) / len(loss_pnls) if loss_pnls else 0.0,
        largest_win=max(win_pnls) if win_pnls else 0.0,
        largest_loss=min(loss_pnls) if loss_pnls else 0.0,
        profit_factor=gross_profit / gross_loss if gross_loss != 0 else 0.0,
        max_drawdown=max_drawdown_pct(equity),
        sharpe_ratio=sharpe_ratio(equity, periods_per_year),
        average_holding_period=avg_holding,
        equity_curve=[(ep.candle_time, ep.equity) for ep in equity_points],
    )
