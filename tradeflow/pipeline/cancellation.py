#!filepath: tradeflow/pipeline/cancellation.py
from __future__ import annotations

import threading


class CancellationToken:
    """
    协作式取消标记。

    - 线程安全（后台 worker / signal handler 都可以 cancel）
    - 只阻止“下一个工作单元”开始，不打断正在执行的 step
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @classmethod
    def none(cls) -> "CancellationToken":
        """永不取消的 token（调用方不关心取消时使用）"""
        return cls()

    @classmethod
    def cancelled(cls) -> "CancellationToken":
        token = cls()
        token.cancel()
        return token

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
