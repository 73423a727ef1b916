#!filepath: tests/pipeline/test_context.py
import json
from datetime import datetime, timezone

from tradeflow.pipeline.context import MarketType, TradingAction, TradingContext, serialize_for_log


def test_builders_return_new_context():
    ctx = TradingContext.empty(3, "ETH-USDT", MarketType.BINANCE)
    when = datetime(2025, 1, 1, tzinfo=timezone.utc)

    ctx2 = ctx.with_price(10.0).with_simulated_time(when).with_signal_weight("ema", 1.0)

    assert ctx.current_price == 0.0
    assert ctx.signal_weights == {}
    assert ctx2.current_price == 10.0
    assert ctx2.simulated_time == when
    assert ctx2.signal_weights == {"ema": 1.0}


def test_total_weight_sums_signals():
    ctx = (
        TradingContext.empty(1, "X", MarketType.OKX)
        .with_signal_weight("a", 1.0)
        .with_signal_weight("b", -0.25)
    )
    assert ctx.total_weight == 0.75


def test_holding_requires_order_and_hold():
    ctx = TradingContext.empty(1, "X", MarketType.OKX)
    assert not ctx.with_action(TradingAction.HOLD).holding()

    from dataclasses import replace
    assert replace(ctx, active_order_id=1, action=TradingAction.HOLD).holding()


def test_execution_ids_are_unique_hex():
    a = TradingContext.empty(1, "X", MarketType.OKX)
    b = TradingContext.empty(1, "X", MarketType.OKX)

    assert a.execution_id != b.execution_id
    assert len(a.execution_id) == 12
    int(a.execution_id, 16)


def test_serialize_for_log_is_json():
    ctx = TradingContext.empty(1, "X", MarketType.OKX).with_price(2.5).with_signal_weight("s", 1.0)
    data = json.loads(serialize_for_log(ctx))

    assert data["Action"] == "NoAction"
    assert data["CurrentPrice"] == 2.5
    assert data["ActiveOrderId"] is None
    assert data["SignalWeights"] == {"s": 1.0}
