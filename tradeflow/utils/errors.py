# tradeflow/utils/errors.py
from __future__ import annotations


class TradeflowError(RuntimeError):
    """Base error of the project."""


class UserInputError(TradeflowError):
    """
    Raised for invalid user-provided config (dates, pipeline ids, paths).
    Should NOT print traceback.
    """


class PortError(TradeflowError):
    """
    Collaborator / infrastructure failure surfaced through a port
    (position lookup, order execution, candle query).

    Steps translate it into Fail, they never let it escape.
    """


class ParameterValidationError(TradeflowError):
    def __init__(self, errors: list) -> None:
        self.errors = list(errors)
        super().__init__(
            "; ".join(f"{e.key}: {e.message}" for e in self.errors)
        )


class StepBuildError(TradeflowError):
    """
    Pipeline 组装失败（未知 step / 参数非法）。
    errors: list[BuildError]
    """

    def __init__(self, errors: list) -> None:
        self.errors = list(errors)
        super().__init__(
            "; ".join(f"{e.step_key}: {e.message}" for e in self.errors)
        )
