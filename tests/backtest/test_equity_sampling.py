#!filepath: tests/backtest/test_equity_sampling.py
from datetime import datetime, timedelta, timezone

import pytest

from tradeflow.backtest.equity import downsample, drawdowns, sample_equity_points

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _samples(n):
    return [(T0 + timedelta(minutes=i), 1000.0 + i) for i in range(n)]


@pytest.mark.parametrize("n", [1, 499, 500, 501, 999, 1000, 1001, 12345])
def test_downsample_bounds_and_endpoints(n):
    samples = _samples(n)
    kept = downsample(samples, 500)

    assert 1 <= len(kept) <= 500
    assert kept[0] == samples[0]
    assert kept[-1] == samples[-1]
    assert kept == sorted(kept)


def test_small_series_kept_whole():
    samples = _samples(10)
    assert downsample(samples, 500) == samples


def test_drawdowns_from_running_peak():
    assert drawdowns([100.0, 120.0, 90.0, 130.0]) == pytest.approx([0.0, 0.0, 0.25, 0.0])
    assert drawdowns([]) == []
    assert drawdowns([-1.0, -2.0]) == [0.0, 0.0]


def test_sample_equity_points_attaches_run_and_drawdown():
    samples = [(T0, 100.0), (T0 + timedelta(minutes=1), 80.0)]

    points = sample_equity_points(5, samples)

    assert [p.run_id for p in points] == [5, 5]
    assert points[1].drawdown == pytest.approx(0.2)
    assert points[1].candle_time == samples[1][0]
