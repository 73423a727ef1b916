#!filepath: tradeflow/trading/signals.py
"""
Signal steps.

Every signal step reads closes through the CandleSource port, computes one
direction in {-1, 0, +1} and records `direction * signalWeight` into
`ctx.signal_weights[<step key>]`. The entry step aggregates the weights.

Common rules:
  - ctx.holding()        -> skip (no new weight while holding)
  - not enough candles   -> Continue without weight
  - candle source error  -> Fail("Error fetching candles: ...")
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence

from tradeflow import logs
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import TradingContext
from tradeflow.pipeline.parameters import (
    ChoiceParam,
    DecimalParam,
    IntParam,
    ParameterDef,
    ParameterSchema,
    StringParam,
    ValidatedParams,
)
from tradeflow.pipeline.ports import Candle, StepServices
from tradeflow.pipeline.steps import Continue, Fail, Step, StepCategory, StepDefinition, StepResult
from tradeflow.trading import indicators
from tradeflow.utils.errors import PortError

CONSTANT_SIGNAL = "constant-signal"
EMA_SIGNAL = "ema-signal"
MACD_SIGNAL = "macd-signal"
VWAP_SIGNAL = "vwap-signal"
EWMAC_SIGNAL = "ewmac-signal"

TIMEFRAMES = ("1m", "5m", "15m", "30m", "1h", "4h", "1d")

SKIP_HOLDING = "Holding position, skip signal."


# -------------------------
# shared parameter defs
# -------------------------
def _timeframe_param() -> ParameterDef:
    return ParameterDef(
        key="timeframe",
        name="Timeframe",
        description="Candle timeframe used for the indicator",
        type=ChoiceParam(TIMEFRAMES),
        default="1m",
        group="Data",
    )


def _weight_param() -> ParameterDef:
    return ParameterDef(
        key="signalWeight",
        name="Signal Weight",
        description="Weight applied to the signal direction",
        type=DecimalParam(0.0, 100.0),
        default=1.0,
        group="Signal",
    )


def _period_param(key: str, name: str, default: int, group: str = "Indicator") -> ParameterDef:
    return ParameterDef(
        key=key,
        name=name,
        description=f"{name} (bars)",
        type=IntParam(1, 500),
        default=default,
        group=group,
    )


# -------------------------
# candle access
# -------------------------
async def _closing_candles(
    services: Optional[StepServices],
    ctx: TradingContext,
    timeframe: str,
    count: int,
) -> Sequence[Candle]:
    """最近 count 根 bar（截止 simulated_time；实盘为 None = 最新）"""
    source = services.candle_source if services is not None else None
    if source is None:
        raise PortError("no candle source configured")
    return await source.query(
        ctx.instrument,
        ctx.market_type,
        timeframe,
        to_date=ctx.simulated_time,
        limit=count,
    )


Compute = Callable[[TradingContext, Sequence[Candle]], StepResult[TradingContext]]


def _signal_step(
    key: str,
    services: Optional[StepServices],
    timeframe: str,
    count: int,
    label: str,
    compute: Compute,
) -> Step[TradingContext]:
    """holding 检查 + 取 bar + 数据不足判断，真正的计算交给 compute"""

    async def execute(ctx: TradingContext, token: CancellationToken) -> StepResult[TradingContext]:
        if ctx.holding():
            return Continue(ctx, SKIP_HOLDING)

        try:
            candles = await _closing_candles(services, ctx, timeframe, count)
        except PortError as e:
            return Fail(f"Error fetching candles: {e}")

        if len(candles) < count:
            return Continue(
                ctx, f"Insufficient candle data ({len(candles)}/{count}), skip {label} signal."
            )
        return compute(ctx, candles)

    return Step(key, execute)


def _weighted(ctx: TradingContext, key: str, direction: float, weight: float):
    """-> (带权重的 ctx, BUY/SELL/NEUTRAL, 带符号权重)"""
    signed = direction * weight
    logs.debug(f"[Signal] {key} direction={direction:+.0f} weight={signed}")
    return ctx.with_signal_weight(key, signed), indicators.direction_label(direction), signed


def _closes(candles: Sequence[Candle]) -> list[float]:
    return [c.close for c in candles]


# -------------------------
# constant
# -------------------------
def constant_signal() -> StepDefinition[TradingContext]:
    schema = ParameterSchema(
        parameters=(
            ParameterDef(
                key="signalName",
                name="Signal Name",
                description="Name under which the weight is recorded",
                type=StringParam(),
                default=CONSTANT_SIGNAL,
            ),
            ParameterDef(
                key="weight",
                name="Weight",
                description="Weight contributed on every run",
                type=DecimalParam(-100.0, 100.0),
                default=1.0,
            ),
        )
    )

    def create(params: ValidatedParams, _) -> Step[TradingContext]:
        name = params.get_string("signalName", CONSTANT_SIGNAL)
        weight = params.get_decimal("weight", 1.0)

        async def execute(ctx: TradingContext, token: CancellationToken):
            if ctx.holding():
                return Continue(ctx, SKIP_HOLDING)
            return Continue(
                ctx.with_signal_weight(name, weight),
                f"Constant signal: {indicators.direction_label(weight)} (weight={weight})",
            )

        return Step(CONSTANT_SIGNAL, execute)

    return StepDefinition(
        key=CONSTANT_SIGNAL,
        name="Constant Signal",
        description="Always contributes the configured weight.",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )


# -------------------------
# EMA crossover
# -------------------------
def ema_signal() -> StepDefinition[TradingContext]:
    schema = ParameterSchema(
        parameters=(
            _period_param("fastPeriod", "Fast EMA Period", 9),
            _period_param("slowPeriod", "Slow EMA Period", 21),
            _timeframe_param(),
            _weight_param(),
        )
    )

    def create(params: ValidatedParams, services) -> Step[TradingContext]:
        fast = params.get_int("fastPeriod", 9)
        slow = params.get_int("slowPeriod", 21)
        timeframe = params.get_string("timeframe", "1m")
        weight = params.get_decimal("signalWeight", 1.0)

        def compute(ctx: TradingContext, candles: Sequence[Candle]):
            closes = _closes(candles)
            fast_ema = indicators.ema_series(fast, closes)
            slow_ema = indicators.ema_series(slow, closes)
            if len(fast_ema) < 2 or len(slow_ema) < 2:
                return Continue(ctx, "Not enough EMA values, skip EMA signal.")

            direction = indicators.crossover_direction(
                fast_ema[-2], fast_ema[-1], slow_ema[-2], slow_ema[-1]
            )
            ctx2, label, signed = _weighted(ctx, EMA_SIGNAL, direction, weight)
            return Continue(
                ctx2,
                f"EMA crossover signal: {label} "
                f"(fast={fast_ema[-1]:.4f}, slow={slow_ema[-1]:.4f}, weight={signed})",
            )

        return _signal_step(EMA_SIGNAL, services, timeframe, slow + 1, "EMA", compute)

    return StepDefinition(
        key=EMA_SIGNAL,
        name="EMA Crossover Signal",
        description="Fast/slow EMA crossover on closing prices.",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )


# -------------------------
# MACD
# -------------------------
def macd_signal() -> StepDefinition[TradingContext]:
    schema = ParameterSchema(
        parameters=(
            _period_param("fastPeriod", "Fast EMA Period", 12),
            _period_param("slowPeriod", "Slow EMA Period", 26),
            _period_param("signalPeriod", "Signal Line Period", 9),
            _timeframe_param(),
            _weight_param(),
        )
    )

    def create(params: ValidatedParams, services) -> Step[TradingContext]:
        fast = params.get_int("fastPeriod", 12)
        slow = params.get_int("slowPeriod", 26)
        signal = params.get_int("signalPeriod", 9)
        timeframe = params.get_string("timeframe", "1m")
        weight = params.get_decimal("signalWeight", 1.0)

        def compute(ctx: TradingContext, candles: Sequence[Candle]):
            closes = _closes(candles)
            fast_ema = indicators.ema_series(fast, closes)
            slow_ema = indicators.ema_series(slow, closes)
            if not fast_ema or not slow_ema:
                return Continue(ctx, "Not enough EMA values, skip MACD signal.")

            # fast EMA 更长，右对齐到 slow EMA
            offset = len(fast_ema) - len(slow_ema)
            macd_line = [f - s for f, s in zip(fast_ema[offset:], slow_ema)]
            signal_line = indicators.ema_series(signal, macd_line)
            if len(signal_line) < 2:
                return Continue(ctx, "Not enough MACD values, skip MACD signal.")

            macd_tail = macd_line[len(macd_line) - len(signal_line):]
            direction = indicators.crossover_direction(
                macd_tail[-2], macd_tail[-1], signal_line[-2], signal_line[-1]
            )
            ctx2, label, signed = _weighted(ctx, MACD_SIGNAL, direction, weight)
            return Continue(
                ctx2,
                f"MACD signal: {label} "
                f"(macd={macd_tail[-1]:.6f}, signal={signal_line[-1]:.6f}, weight={signed})",
            )

        return _signal_step(MACD_SIGNAL, services, timeframe, slow + signal, "MACD", compute)

    return StepDefinition(
        key=MACD_SIGNAL,
        name="MACD Signal",
        description="MACD line / signal line crossover.",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )


# -------------------------
# VWAP band
# -------------------------
def vwap_signal() -> StepDefinition[TradingContext]:
    schema = ParameterSchema(
        parameters=(
            _period_param("lookbackPeriod", "Lookback Period", 20),
            ParameterDef(
                key="thresholdPct",
                name="Threshold (%)",
                description="Band around VWAP, in percent of VWAP",
                type=DecimalParam(0.0, 100.0),
                default=1.0,
                group="Indicator",
            ),
            _timeframe_param(),
            _weight_param(),
        )
    )

    def create(params: ValidatedParams, services) -> Step[TradingContext]:
        lookback = params.get_int("lookbackPeriod", 20)
        threshold_pct = params.get_decimal("thresholdPct", 1.0)
        timeframe = params.get_string("timeframe", "1m")
        weight = params.get_decimal("signalWeight", 1.0)

        def compute(ctx: TradingContext, candles: Sequence[Candle]):
            typical = [((c.high + c.low + c.close) / 3.0, c.volume) for c in candles]
            value = indicators.vwap(typical)
            if value is None:
                return Continue(ctx, "Zero volume in lookback window, skip VWAP signal.")

            price = candles[-1].close
            band = value * threshold_pct / 100.0
            if price > value + band:
                direction = 1.0
            elif price < value - band:
                direction = -1.0
            else:
                direction = 0.0

            ctx2, label, signed = _weighted(ctx, VWAP_SIGNAL, direction, weight)
            return Continue(
                ctx2,
                f"VWAP signal: {label} (price={price:.4f}, vwap={value:.4f}, weight={signed})",
            )

        return _signal_step(VWAP_SIGNAL, services, timeframe, lookback, "VWAP", compute)

    return StepDefinition(
        key=VWAP_SIGNAL,
        name="VWAP Signal",
        description="Price relative to a VWAP band.",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )


# -------------------------
# EWMAC (volatility normalised)
# -------------------------
def ewmac_signal() -> StepDefinition[TradingContext]:
    schema = ParameterSchema(
        parameters=(
            _period_param("fastSpan", "Fast Span", 8),
            _period_param("slowSpan", "Slow Span", 32),
            _timeframe_param(),
            _weight_param(),
        )
    )

    def create(params: ValidatedParams, services) -> Step[TradingContext]:
        fast = params.get_int("fastSpan", 8)
        slow = params.get_int("slowSpan", 32)
        timeframe = params.get_string("timeframe", "1m")
        weight = params.get_decimal("signalWeight", 1.0)

        async def execute(ctx: TradingContext, token: CancellationToken):
            if ctx.holding():
                return Continue(ctx, SKIP_HOLDING)

            try:
                candles = await _closing_candles(services, ctx, timeframe, slow * 2)
            except PortError as e:
                return Fail(f"Error fetching candles: {e}")

            # 取 2*slow 根，但只要求至少 slow 根
            if len(candles) < slow:
                return Continue(
                    ctx, f"Insufficient candle data ({len(candles)}/{slow}), skip EWMAC signal."
                )

            closes = _closes(candles)
            fast_ema = indicators.ema_series(fast, closes)
            slow_ema = indicators.ema_series(slow, closes)
            offset = len(fast_ema) - len(slow_ema)
            raw = [f - s for f, s in zip(fast_ema[offset:], slow_ema)]

            vol = indicators.rolling_std_dev(slow, indicators.returns(closes))
            if not raw or not vol:
                return Continue(ctx, "Not enough volatility data, skip EWMAC signal.")

            last_price = closes[-1]
            normalizer = vol[-1] * last_price if vol[-1] > 0 and last_price > 0 else 1.0
            forecast = raw[-1] / normalizer
            direction = 1.0 if forecast > 0 else -1.0 if forecast < 0 else 0.0

            ctx2, label, signed = _weighted(ctx, EWMAC_SIGNAL, direction, weight)
            return Continue(ctx2, f"EWMAC signal: {label} (forecast={forecast:.4f}, weight={signed})")

        return Step(EWMAC_SIGNAL, execute)

    return StepDefinition(
        key=EWMAC_SIGNAL,
        name="EWMAC Signal",
        description="Volatility-normalised EWMA crossover.",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )
