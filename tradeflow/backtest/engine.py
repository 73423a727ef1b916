#!filepath: tradeflow/backtest/engine.py
"""
Backtest Engine

Semantics:
- Replays 1m candles of [start_date, end_date] in chronological order.
- The pipeline runs at most once per interval (next_execution gate).
- The same Runner / step keys as live mode; only the adapters differ.
- One BacktestState per run, created here and never stored on the engine.

Invariants:
- Per-bar Stop / Fail never aborts the replay.
- Equity = balance + quantity * close, sampled after every executed bar.
- Any open position is force-closed at the last replayed close.
- Persistence order: trades, equity points, logs, run row.
- No exception escapes run(); failures become FAILED run + BacktestError.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from typing import List, Optional, Sequence

from tradeflow import logs
from tradeflow.backtest.adapters import BacktestPositionAdapter, BacktestTradeExecutor
from tradeflow.backtest.equity import EquitySample, sample_equity_points
from tradeflow.backtest.metrics import calculate
from tradeflow.backtest.models import (
    BacktestError,
    BacktestExecutionLog,
    BacktestOk,
    BacktestOutcome,
    BacktestResult,
    BacktestRun,
    BacktestStatus,
)
from tradeflow.backtest.state import BacktestState
from tradeflow.config.backtest_config import BacktestConfig, BacktestDefaults
from tradeflow.observability.instrumentation import BacktestPhase, Instrumentation, NoOpInstrumentation
from tradeflow.pipeline import runner
from tradeflow.pipeline.builder import build_steps
from tradeflow.pipeline.cancellation import CancellationToken
from tradeflow.pipeline.context import TradingContext, serialize_for_log
from tradeflow.pipeline.execution_log import ExecutionLog, ExecutionLogBuffer, utcnow
from tradeflow.pipeline.ports import Candle, CandleSource, StepServices
from tradeflow.storage.backtests import BacktestStore, new_run
from tradeflow.storage.pipelines import Pipeline
from tradeflow.trading.library import trading_registry
from tradeflow.utils.errors import StepBuildError

class BacktestEngine:
    """
    BacktestEngine

    Collaborators:
      pipelines : PipelineRepository (get_by_id)
      candles   : CandleSource
      store     : BacktestStore
      inst      : Instrumentation (phase timeline / replay progress / summary)
    """

    def __init__(
        self,
        pipelines,
        candles: CandleSource,
        store: BacktestStore,
        inst: Optional[Instrumentation] = None,
        defaults: Optional[BacktestDefaults] = None,
    ):
        self._pipelines = pipelines
        self._candles = candles
        self._store = store
        self.inst = inst or NoOpInstrumentation()
        self.defaults = defaults or BacktestDefaults()

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------
    async def submit(self, config: BacktestConfig, token: Optional[CancellationToken] = None) -> BacktestOutcome:
        """create_run + run"""
        run = await self._store.create_run(config)
        return await self.run(run.id, config, token)

    async def run(
        self,
        run_id: int,
        config: BacktestConfig,
        token: Optional[CancellationToken] = None,
    ) -> BacktestOutcome:
        token = token or CancellationToken.none()
        run = new_run(run_id, config)

        logs.info(
            f"[Backtest] run={run_id} pipeline={config.pipeline_id} "
            f"range=[{config.start_date} ~ {config.end_date}] interval={config.interval_minutes}m "
            f"capital={config.initial_capital}"
        )

        try:
            existing = await self._store.get_run(run_id)
            if existing is not None:
                run = existing
            run = replace(run, status=BacktestStatus.RUNNING)
            await self._store.update_run(run)

            outcome = await self._run(run, config, token)
        except Exception as e:
            logs.exception(f"[Backtest] run={run_id} crashed")
            await self._mark_failed(run, str(e))
            return BacktestError(str(e))

        self.inst.report(f"backtest run={run_id}")
        return outcome

    # ------------------------------------------------------------------
    # core
    # ------------------------------------------------------------------
    async def _run(self, run: BacktestRun, config: BacktestConfig, token: CancellationToken) -> BacktestOutcome:
        # -------- load pipeline + build steps --------
        with self.inst.phase(BacktestPhase.LOAD_PIPELINE):
            pipeline: Optional[Pipeline] = await self._pipelines.get_by_id(config.pipeline_id)
            if pipeline is None:
                return await self._fail(run, f"Pipeline not found: {config.pipeline_id}")

            state = BacktestState.create(run.id, config)
            registry = trading_registry(BacktestPositionAdapter(state), BacktestTradeExecutor(state))

            try:
                steps = build_steps(registry, StepServices(candle_source=self._candles), pipeline.steps)
            except StepBuildError as e:
                return await self._fail(run, f"Failed to build steps: {e}", error_message=str(e))

            if not steps:
                return await self._fail(run, "No enabled steps")

        # -------- candles --------
        with self.inst.phase(BacktestPhase.LOAD_CANDLES):
            candles = await self._candles.query(
                pipeline.instrument,
                pipeline.market_type,
                self.defaults.candle_timeframe,
                from_date=config.start_date,
                to_date=config.end_date,
            )
            candles = sorted(candles, key=lambda c: c.timestamp)

        if not candles:
            return await self._fail(run, "No candle data for the specified date range")

        # -------- replay --------
        with self.inst.phase(BacktestPhase.REPLAY):
            buffer = ExecutionLogBuffer()
            samples, last_seen, cancelled = await self._replay(pipeline, steps, state, candles, config, buffer, token)

        # -------- force close + metrics --------
        with self.inst.phase(BacktestPhase.METRICS):
            if last_seen is not None and state.current_position is not None:
                state.close_position(last_seen.close, last_seen.timestamp)
                logs.info(f"[Backtest] run={run.id} force-closed position @ {last_seen.close}")

            trades = state.chronological_trades()
            equity_points = sample_equity_points(run.id, samples, self.defaults.max_equity_points)
            metrics = calculate(config.initial_capital, trades, equity_points, self.defaults.periods_per_year)

        # -------- persist --------
        with self.inst.phase(BacktestPhase.PERSIST):
            await self._store.insert_trades(trades)
            await self._store.insert_equity_points(equity_points)
            await self._store.insert_logs(_to_backtest_logs(run.id, buffer.logs))

            status = BacktestStatus.CANCELLED if cancelled else BacktestStatus.COMPLETED
            await self._store.update_run(
                replace(
                    run,
                    status=status,
                    final_capital=metrics.final_capital,
                    total_trades=metrics.total_trades,
                    win_rate=metrics.win_rate,
                    max_drawdown=metrics.max_drawdown,
                    sharpe_ratio=metrics.sharpe_ratio,
                    error_message=None,
                    completed_at=utcnow(),
                )
            )

        self.inst.record("bars", len(candles))
        self.inst.record("executions", len(samples))
        self.inst.record("trades", metrics.total_trades)
        self.inst.record("final_capital", metrics.final_capital)
        self.inst.record("sharpe", metrics.sharpe_ratio)

        logs.info(
            f"[Backtest] run={run.id} {status.name} trades={metrics.total_trades} "
            f"return={metrics.total_return:.2f}% final={metrics.final_capital:.4f}"
        )

        return BacktestOk(
            BacktestResult(run_id=run.id, metrics=metrics, trades=trades, equity_points=equity_points)
        )

    async def _replay(
        self,
        pipeline: Pipeline,
        steps,
        state: BacktestState,
        candles: Sequence[Candle],
        config: BacktestConfig,
        buffer: ExecutionLogBuffer,
        token: CancellationToken,
    ):
        interval = timedelta(minutes=config.interval_minutes)
        next_execution = config.start_date
        samples: List[EquitySample] = []
        last_seen: Optional[Candle] = None
        cancelled = False

        progress = self.inst.progress
        progress.start(len(candles))

        for i, candle in enumerate(candles, 1):
            if token.is_cancelled:
                cancelled = True
                logs.warning(f"[Backtest] cancelled at bar {i}/{len(candles)}")
                break

            last_seen = candle

            executed = candle.timestamp >= next_execution
            if executed:
                ctx = (
                    TradingContext.empty(pipeline.id, pipeline.instrument, pipeline.market_type)
                    .with_price(candle.close)
                    .with_simulated_time(candle.timestamp)
                )
                await runner.run(
                    pipeline.id,
                    ctx.execution_id,
                    serialize_for_log,
                    buffer.stamped(candle.timestamp),
                    steps,
                    ctx,
                    token,
                )

                samples.append((candle.timestamp, state.equity(candle.close)))
                next_execution = candle.timestamp + interval

            progress.bar(executed)

        progress.done()
        return samples, last_seen, cancelled

    # ------------------------------------------------------------------
    # failure paths
    # ------------------------------------------------------------------
    async def _fail(self, run: BacktestRun, message: str, error_message: Optional[str] = None) -> BacktestError:
        """结构性错误：FAILED run + BacktestError"""
        logs.error(f"[Backtest] run={run.id} failed: {message}")
        await self._store.update_run(
            replace(
                run,
                status=BacktestStatus.FAILED,
                error_message=error_message or message,
                completed_at=utcnow(),
            )
        )
        return BacktestError(message)

    async def _mark_failed(self, run: BacktestRun, message: str) -> None:
        try:
            await self._store.update_run(
                replace(run, status=BacktestStatus.FAILED, error_message=message, completed_at=utcnow())
            )
        except Exception:
            logs.exception(f"[Backtest] run={run.id} could not persist FAILED status")


def _to_backtest_logs(run_id: int, entries: Sequence[ExecutionLog]) -> List[BacktestExecutionLog]:
    return [
        BacktestExecutionLog(
            run_id=run_id,
            execution_id=e.execution_id,
            step_key=e.step_key,
            outcome=int(e.outcome),
            message=e.message,
            context_json=e.context_snapshot,
            candle_time=e.start_time,
            start_time=e.start_time,
            end_time=e.end_time,
        )
        for e in entries
    ]
