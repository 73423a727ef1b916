#!filepath: tradeflow/storage/candles.py
"""
CandleSource implementations.

- InMemoryCandleSource : candles held in sorted per-series lists
- ParquetCandleSource  : one parquet file per series, loaded lazily into memory

Series key = (instrument, market_type, timeframe).
Parquet file name: <instrument>_<market>_<timeframe>.parquet
"""
from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pyarrow as pa
import pyarrow.parquet as pq

from tradeflow import logs
from tradeflow.pipeline.context import MarketType
from tradeflow.pipeline.ports import Candle
from tradeflow.utils.datetime_utils import as_utc
from tradeflow.utils.errors import PortError

SeriesKey = Tuple[str, MarketType, str]

CANDLE_COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


class InMemoryCandleSource:
    def __init__(self, candles: Iterable[Candle] = ()):
        self._series: Dict[SeriesKey, List[Candle]] = {}
        self._times: Dict[SeriesKey, List[datetime]] = {}
        self.add(candles)

    def add(self, candles: Iterable[Candle]) -> None:
        touched = set()
        for c in candles:
            key = (c.instrument, MarketType(c.market_type), c.timeframe)
            self._series.setdefault(key, []).append(c)
            touched.add(key)

        for key in touched:
            self._series[key].sort(key=lambda c: c.timestamp)
            self._times[key] = [c.timestamp for c in self._series[key]]

    def _load(self, key: SeriesKey) -> None:
        """子类按需加载；内存版本什么都不做"""

    async def query(
        self,
        instrument: str,
        market_type: MarketType,
        timeframe: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> Sequence[Candle]:
        key = (instrument, MarketType(market_type), timeframe)
        if key not in self._series:
            self._load(key)

        series = self._series.get(key, [])
        times = self._times.get(key, [])

        from_date, to_date = as_utc(from_date), as_utc(to_date)
        lo = bisect_left(times, from_date) if from_date is not None else 0
        hi = bisect_right(times, to_date) if to_date is not None else len(times)
        out = series[lo:hi]

        if limit is not None:
            out = out[-limit:] if limit > 0 else []
        return out


class ParquetCandleSource(InMemoryCandleSource):
    """
    <root>/<instrument>_<market>_<timeframe>.parquet

    列：timestamp, open, high, low, close, volume
    时间统一为 UTC aware（naive 视为 UTC）；查询边界同样处理。
    """

    def __init__(self, root: str | Path):
        super().__init__()
        self.root = Path(root)

    @staticmethod
    def file_name(instrument: str, market_type: MarketType, timeframe: str) -> str:
        return f"{instrument}_{MarketType(market_type).value}_{timeframe}.parquet"

    def path_for(self, instrument: str, market_type: MarketType, timeframe: str) -> Path:
        return self.root / self.file_name(instrument, market_type, timeframe)

    def _load(self, key: SeriesKey) -> None:
        instrument, market_type, timeframe = key
        path = self.path_for(instrument, market_type, timeframe)
        if not path.exists():
            logs.warning(f"[Candles] no parquet file for {instrument}/{market_type.value}/{timeframe}: {path}")
            self._series[key] = []
            self._times[key] = []
            return

        try:
            table = pq.read_table(path, columns=list(CANDLE_COLUMNS))
        except (OSError, pa.ArrowInvalid, KeyError) as e:
            raise PortError(f"failed to read candles from {path}: {e}") from e

        candles = [
            Candle(
                instrument=instrument,
                market_type=market_type,
                timeframe=timeframe,
                timestamp=as_utc(row["timestamp"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"] or 0.0),
            )
            for row in table.to_pylist()
        ]
        logs.info(f"[Candles] loaded {len(candles)} bars from {path.name}")
        self.add(candles)
        self._series.setdefault(key, [])
        self._times.setdefault(key, [])

    def write(self, candles: Sequence[Candle]) -> Path:
        """把同一 series 的 candles 写成一个 parquet 文件（覆盖）"""
        if not candles:
            raise ValueError("no candles to write")

        first = candles[0]
        path = self.path_for(first.instrument, first.market_type, first.timeframe)
        path.parent.mkdir(parents=True, exist_ok=True)

        ordered = sorted(candles, key=lambda c: c.timestamp)
        table = pa.table(
            {
                "timestamp": [as_utc(c.timestamp) for c in ordered],
                "open": [c.open for c in ordered],
                "high": [c.high for c in ordered],
                "low": [c.low for c in ordered],
                "close": [c.close for c in ordered],
                "volume": [c.volume for c in ordered],
            }
        )
        pq.write_table(table, path)

        # 让下一次 query 重新读取
        key = (first.instrument, MarketType(first.market_type), first.timeframe)
        self._series.pop(key, None)
        self._times.pop(key, None)
        return path
