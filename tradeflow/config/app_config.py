#!filepath: tradeflow/config/app_config.py
import os

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .log_config import LogConfig
from .storage_config import StorageConfig
from .backtest_config import BacktestDefaults


def project_root() -> str:
    """
    返回项目根目录（基于当前文件位置推导）:
    tradeflow/config/app_config.py → tradeflow/config → tradeflow → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


def default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), "base.yml")


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    backtest: BacktestDefaults = Field(default_factory=BacktestDefaults)

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - 默认使用 tradeflow/config/base.yml
        - 不依赖当前工作目录
        - TRADEFLOW_DATA_ROOT / TRADEFLOW_LOG_LEVEL 环境变量优先
        """
        load_dotenv(os.path.join(project_root(), ".env"))

        if path is None:
            path = default_config_path()

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        data_root = os.getenv("TRADEFLOW_DATA_ROOT")
        if data_root:
            raw.setdefault("storage", {})["data_root"] = data_root

        log_level = os.getenv("TRADEFLOW_LOG_LEVEL")
        if log_level:
            raw.setdefault("log", {})["level"] = log_level

        return cls(**raw)

    # --------------------------------------------------
    # resolved paths
    # --------------------------------------------------
    def resolve(self, rel: str) -> str:
        if os.path.isabs(rel):
            return rel
        return os.path.join(self.storage.data_root, rel)
