#!filepath: tradeflow/config/storage_config.py
from pydantic import BaseModel


class StorageConfig(BaseModel):
    """
    文件型存储位置（相对路径以 data_root 为根）
    """
    data_root: str = "data"
    pipelines_file: str = "pipelines.yml"
    candles_dir: str = "candles"
    backtests_dir: str = "backtests"
