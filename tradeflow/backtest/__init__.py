"""
Backtest twin of the live pipeline.

- state    : per-run in-memory ledger
- adapters : GetPosition / TradeExecutor bound to the ledger
- engine   : bar-by-bar replay driving the pipeline Runner
- equity   : equity sampling + drawdown
- metrics  : trade / equity derived performance metrics
- report   : metrics.json / trades.csv / equity curve artifacts
"""
