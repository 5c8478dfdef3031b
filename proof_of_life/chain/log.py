# ABOUTME: Capped, append-only activity log shown to players for ledger traffic.
# ABOUTME: Every entry is mirrored to loguru at the matching level.

import time
from collections import deque
from datetime import datetime
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field

ChainLogLevel = Literal["INFO", "WARN", "ERROR"]

_LOGURU_LEVEL = {"INFO": "INFO", "WARN": "WARNING", "ERROR": "ERROR"}


class ChainLogEntry(BaseModel):
    ts: float = Field(description="Unix timestamp in seconds")
    level: ChainLogLevel
    msg: str

    model_config = {"frozen": True}


def format_line(entry: ChainLogEntry) -> str:
    """Render as '[HH:MM:SS] LEVEL message' in local time"""
    return f"[{datetime.fromtimestamp(entry.ts).strftime('%H:%M:%S')}] {entry.level} {entry.msg}"


def fake_tx_hash(seed: str) -> str:
    """Deterministic placeholder hash (FNV-1a) for simulated transactions"""
    h = 2166136261
    for ch in seed:
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return f"TX_{h:08X}"


class ChainLog:
    """Ring buffer of the most recent `limit` entries"""

    def __init__(self, limit: int = 200):
        self.limit = limit
        self._entries: deque[ChainLogEntry] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ChainLogEntry]:
        return list(self._entries)

    def append(self, level: ChainLogLevel, msg: str, ts: float | None = None) -> ChainLogEntry:
        entry = ChainLogEntry(ts=time.time() if ts is None else ts, level=level, msg=msg)
        self._entries.append(entry)
        logger.log(_LOGURU_LEVEL[level], "{}", msg)
        return entry

    def info(self, msg: str) -> ChainLogEntry:
        return self.append("INFO", msg)

    def warn(self, msg: str) -> ChainLogEntry:
        return self.append("WARN", msg)

    def error(self, msg: str) -> ChainLogEntry:
        return self.append("ERROR", msg)

    def lines(self) -> list[str]:
        return [format_line(e) for e in self._entries]
