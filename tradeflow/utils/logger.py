#!filepath: tradeflow/utils/logger.py
import os
import json
import inspect
from functools import wraps
from time import perf_counter
from loguru import logger
from typing import Callable


class Logging:
    """
    项目统一日志模块（loguru）
    ---------------------------------------
    - 按日期切割
    - 日志保留周期
    - 函数级日志装饰器（同步 / async 都支持）
    ---------------------------------------
    """

    def __init__(
        self,
        log_dir: str = "logs",
        rotation: str = "1 day",
        retention: str = "30 days",
        log_level: str = "INFO",
    ):
        self.log_dir = log_dir
        self.rotation = rotation
        self.retention = retention
        self.level = log_level

        os.makedirs(self.log_dir, exist_ok=True)
        self._configure()

    def _configure(self) -> None:
        """
        配置全局 logger
        """
        logger.remove()

        logger.add(
            sink=f"{self.log_dir}/{{time:YYYY-MM-DD}}.log",
            rotation=self.rotation,
            retention=self.retention,
            level=self.level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
            enqueue=True,
            backtrace=True,
            diagnose=True,
        )

        logger.debug("-----------Logger initialized-----------")

    @classmethod
    def from_config(cls, cfg) -> "Logging":
        """LogConfig -> Logging"""
        return cls(
            log_dir=cfg.dir,
            rotation=cfg.rotation,
            retention=cfg.retention,
            log_level=cfg.level,
        )

    # ----------- 日志方法 -----------
    def debug(self, msg: str, *args, **kwargs):
        logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        logger.exception(msg, *args, **kwargs)

    # ---------- 日志装饰器 ----------
    def catch(
        self,
        msg: str = "Exception occurred",
        log_inputs: bool = False,
        log_time: bool = True,
    ) -> Callable:
        """
        记录调用耗时 / 异常，异常继续向上抛出。

        用法：
            @logs.catch("load candles failed")
            async def load(...): ...
        """

        def decorator(func: Callable):
            if inspect.iscoroutinefunction(func):
                @wraps(func)
                async def async_wrapper(*args, **kwargs):
                    if log_inputs:
                        logger.info(
                            f"[CALL] {func.__name__} kwargs={json.dumps(kwargs, default=str)}"
                        )
                    start = perf_counter()
                    try:
                        result = await func(*args, **kwargs)
                    except Exception:
                        logger.exception(f"[ERROR] {func.__name__}: {msg}")
                        raise
                    if log_time:
                        logger.info(f"[TIME] {func.__name__} took {perf_counter() - start:.4f}s")
                    return result

                return async_wrapper

            @wraps(func)
            def wrapper(*args, **kwargs):
                if log_inputs:
                    logger.info(
                        f"[CALL] {func.__name__} kwargs={json.dumps(kwargs, default=str)}"
                    )
                start = perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception:
                    logger.exception(f"[ERROR] {func.__name__}: {msg}")
                    raise
                if log_time:
                    logger.info(f"[TIME] {func.__name__} took {perf_counter() - start:.4f}s")
                return result

            return wrapper

        return decorator


# 默认全局 logs（CLI 会按 AppConfig.log 重新初始化）
logs = Logging()
