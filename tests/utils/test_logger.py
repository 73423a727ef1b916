#!filepath: tests/utils/test_logger.py
import asyncio

import pytest
from loguru import logger

from tradeflow import logs
from tradeflow.utils.logger import Logging


@pytest.fixture
def captured():
    lines = []
    sink_id = logger.add(lambda msg: lines.append(str(msg)))
    yield lines
    logger.remove(sink_id)


def test_catch_sync_logs_time(captured):
    @logs.catch("add failed", log_inputs=True)
    def add(a, b=0):
        return a + b

    assert add(1, b=2) == 3
    output = "\n".join(captured)
    assert "[CALL] add" in output
    assert "[TIME] add" in output


def test_catch_reraises(captured):
    @logs.catch("boom failed")
    def boom():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        boom()
    assert "boom failed" in "\n".join(captured)


def test_catch_async(captured):
    @logs.catch("async failed")
    async def double(x):
        return x * 2

    assert asyncio.run(double(4)) == 8
    assert "[TIME] double" in "\n".join(captured)


def test_file_sink_from_config(tmp_path):
    from tradeflow.config.log_config import LogConfig

    Logging.from_config(LogConfig(dir=str(tmp_path / "logs"), level="DEBUG"))
    logs.info("hello file sink")
    logger.complete()

    files = list((tmp_path / "logs").glob("*.log"))
    assert files
    assert "hello file sink" in files[0].read_text(encoding="utf-8")
