"""
Trading step library.

- position   : check-position / position-gate-step
- signals    : constant / ema / macd / vwap / ewmac signal steps
- entry      : entry-step (weight aggregation -> buy / sell)
- indicators : pure indicator math used by the signal steps
- library    : trading_step_definitions(get_position, executor)
"""
