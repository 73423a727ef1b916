# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

import pytest
from loguru import logger

from tradeflow.pipeline.context import MarketType, TradingContext
from tradeflow.pipeline.ports import Candle

INSTRUMENT = "BTC-USDT"
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


def make_candles(
    closes: Sequence[float],
    start: datetime = T0,
    step: timedelta = timedelta(minutes=1),
    instrument: str = INSTRUMENT,
    market_type: MarketType = MarketType.OKX,
    timeframe: str = "1m",
    volume: float = 1.0,
) -> list[Candle]:
    return [
        Candle(
            instrument=instrument,
            market_type=market_type,
            timeframe=timeframe,
            timestamp=start + step * i,
            open=c,
            high=c,
            low=c,
            close=c,
            volume=volume,
        )
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def candles_factory():
    return make_candles


@pytest.fixture
def ctx() -> TradingContext:
    return TradingContext.empty(1, INSTRUMENT, MarketType.OKX).with_price(100.0)
