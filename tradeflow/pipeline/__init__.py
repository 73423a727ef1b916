"""
Pipeline core.

- steps         : Step / StepResult (Continue | Stop | Fail) / StepDefinition
- runner        : sequential interpreter over a list of steps
- context       : TradingContext threaded through steps
- parameters    : raw string params -> ValidatedParams
- registry      : step type key -> StepDefinition
- builder       : PipelineStepConfig list -> Step list
- ports         : capabilities consumed by steps (position / executor / candles)
- execution_log : one ExecutionLog per executed step
"""
