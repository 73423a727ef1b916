#!filepath: tradeflow/utils/datetime_utils.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def as_utc(when: Optional[datetime]) -> Optional[datetime]:
    """naive datetime 视为 UTC；aware datetime 原样返回"""
    if when is None or when.tzinfo is not None:
        return when
    return when.replace(tzinfo=timezone.utc)
