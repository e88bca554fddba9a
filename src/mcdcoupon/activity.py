"""Bounded, timestamped activity log shown by the web and terminal front-ends."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable

logger = logging.getLogger(__name__)

MAX_ENTRIES = 100


def format_log_message(message: str, now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return f"[{stamp}] {message}"


class ActivityLog:
    """Keeps the last ``MAX_ENTRIES`` operator-facing messages."""

    def __init__(self, max_entries: int = MAX_ENTRIES, clock: Callable[[], datetime] = datetime.now) -> None:
        self._entries: deque[str] = deque(maxlen=max_entries)
        self._clock = clock
        self._lock = threading.Lock()

    def add(self, message: str) -> None:
        logger.info("%s", message)
        with self._lock:
            self._entries.append(format_log_message(message, self._clock()))

    def tail(self, count: int | None = None) -> list[str]:
        with self._lock:
            entries = list(self._entries)
        if count is None:
            return entries
        return entries[-count:] if count > 0 else []

    def __len__(self) -> int:
        return len(self._entries)
