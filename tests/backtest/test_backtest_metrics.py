#!filepath: tests/backtest/test_backtest_metrics.py
import math
import statistics
from datetime import datetime, timedelta, timezone

import pytest

from tradeflow.backtest.metrics import build_trade_pairs, calculate, max_drawdown_pct, sharpe_ratio
from tradeflow.backtest.models import BacktestEquityPoint, BacktestTrade, OrderSide

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _trade(side, price, minutes, qty=1.0):
    return BacktestTrade(
        run_id=1, side=side, price=price, quantity=qty,
        candle_time=T0 + timedelta(minutes=minutes), capital_after=0.0,
    )


def _points(values):
    return [
        BacktestEquityPoint(run_id=1, candle_time=T0 + timedelta(minutes=i), equity=v)
        for i, v in enumerate(values)
    ]


def test_empty_inputs_are_all_zero():
    m = calculate(1000.0, [], [])

    assert m.final_capital == 1000.0
    assert m.total_return == 0.0
    assert m.total_trades == 0
    assert m.win_rate == 0.0
    assert m.profit_factor == 0.0
    assert m.max_drawdown == 0.0
    assert m.sharpe_ratio == 0.0
    assert m.average_holding_period == timedelta(0)
    assert m.equity_curve == []


def test_single_winning_round_trip():
    trades = [_trade(OrderSide.SELL, 110.0, 30), _trade(OrderSide.BUY, 100.0, 0)]
    m = calculate(1000.0, trades, _points([1000.0, 1010.0]))

    assert m.total_trades == 1
    assert m.winning_trades == 1
    assert m.losing_trades == 0
    assert m.win_rate == 100.0
    assert m.average_win == pytest.approx(10.0)
    assert m.largest_win == pytest.approx(10.0)
    assert m.profit_factor == 0.0
    assert m.average_holding_period == timedelta(minutes=30)
    assert m.total_return == pytest.approx(1.0)


def test_odd_trade_count_ignores_trailing_trade():
    trades = [
        _trade(OrderSide.BUY, 100.0, 0),
        _trade(OrderSide.SELL, 90.0, 1),
        _trade(OrderSide.BUY, 95.0, 2),
    ]

    assert len(build_trade_pairs(trades)) == 1
    m = calculate(1000.0, trades, [])
    assert m.total_trades == 1
    assert m.losing_trades == 1
    assert m.largest_loss == pytest.approx(-10.0)


def test_break_even_counts_as_loss_and_profit_factor():
    trades = [
        _trade(OrderSide.BUY, 100.0, 0), _trade(OrderSide.SELL, 120.0, 1),
        _trade(OrderSide.BUY, 100.0, 2), _trade(OrderSide.SELL, 90.0, 3),
        _trade(OrderSide.BUY, 100.0, 4), _trade(OrderSide.SELL, 100.0, 5),
    ]
    m = calculate(1000.0, trades, [])

    assert m.winning_trades == 1
    assert m.losing_trades == 2
    assert m.profit_factor == pytest.approx(20.0 / 10.0)
    assert m.average_loss == pytest.approx(-5.0)
    assert m.win_rate == pytest.approx(100.0 / 3)


def test_max_drawdown_uses_running_peak():
    assert max_drawdown_pct([100.0, 120.0, 90.0, 130.0, 117.0]) == pytest.approx(25.0)
    assert max_drawdown_pct([]) == 0.0
    assert max_drawdown_pct([0.0, -5.0]) == 0.0


def test_sharpe_degenerate_cases():
    assert sharpe_ratio([100.0]) == 0.0
    assert sharpe_ratio([100.0, 100.0, 100.0]) == 0.0
    assert sharpe_ratio([0.0, 0.0]) == 0.0


def test_sharpe_annualized():
    eq = [100.0, 110.0, 121.0, 108.9]
    r = [0.1, 0.1, -0.1]
    expected = statistics.mean(r) / statistics.pstdev(r) * math.sqrt(365)

    assert sharpe_ratio(eq) == pytest.approx(expected)
    assert math.isfinite(calculate(100.0, [], _points(eq)).sharpe_ratio)


def test_zero_initial_capital_total_return():
    assert calculate(0.0, [], _points([0.0, 10.0])).total_return == 0.0
