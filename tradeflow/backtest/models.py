#!filepath: tradeflow/backtest/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import List, Optional, Tuple, Union


class OrderSide(IntEnum):
    BUY = 0
    SELL = 1


class BacktestStatus(IntEnum):
    PENDING = 0
    RUNNING = 1
    COMPLETED = 2
    FAILED = 3
    CANCELLED = 4


@dataclass
class BacktestRun:
    """
    一次回测的 run 行（可变：engine 逐步更新 status / 结果字段）
    """
    id: int
    pipeline_id: int
    start_date: datetime
    end_date: datetime
    interval_minutes: int
    initial_capital: float
    status: BacktestStatus = BacktestStatus.PENDING
    final_capital: Optional[float] = None
    total_trades: Optional[int] = None
    win_rate: Optional[float] = None
    max_drawdown: Optional[float] = None
    sharpe_ratio: Optional[float] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class BacktestTrade:
    run_id: int
    side: OrderSide
    price: float
    quantity: float
    candle_time: datetime
    capital_after: float
    fee: float = 0.0


@dataclass(frozen=True)
class BacktestEquityPoint:
    run_id: int
    candle_time: datetime
    equity: float
    drawdown: float = 0.0


@dataclass(frozen=True)
class BacktestExecutionLog:
    """ExecutionLog 的回测版本：额外带 run_id 和 candle_time"""
    run_id: int
    execution_id: str
    step_key: str
    outcome: int
    message: str
    context_json: str
    candle_time: datetime
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class BacktestMetrics:
    total_return: float = 0.0
    final_capital: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    average_holding_period: timedelta = timedelta(0)
    equity_curve: List[Tuple[datetime, float]] = field(default_factory=list)

    def to_dict(self) -> dict:
        """metrics.json 使用的扁平结构（不含 equity_curve）"""
        return {
            "total_return": self.total_return,
            "final_capital": self.final_capital,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "average_win": self.average_win,
            "average_loss": self.average_loss,
            "largest_win": self.largest_win,
            "largest_loss": self.largest_loss,
            "profit_factor": self.profit_factor,
            "max_drawdown": self.max_drawdown,
            "sharpe_ratio": self.sharpe_ratio,
            "average_holding_period_seconds": self.average_holding_period.total_seconds(),
        }


@dataclass(frozen=True)
class BacktestResult:
    """
    BacktestResult（FROZEN）

    不可变事实结果；metrics 由 trades / equity_points 派生。
    trades 按时间正序。
    """
    run_id: int
    metrics: BacktestMetrics
    trades: List[BacktestTrade] = field(default_factory=list)
    equity_points: List[BacktestEquityPoint] = field(default_factory=list)


@dataclass(frozen=True)
class BacktestOk:
    result: BacktestResult


@dataclass(frozen=True)
class BacktestError:
    message: str


BacktestOutcome = Union[BacktestOk, BacktestError]
