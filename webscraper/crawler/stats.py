"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any


class StatsCollector:
    """Collect per-session counters from concurrent fetch/process/image workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._started_at = datetime.now(timezone.utc)
        self._finished_at: datetime | None = None

    def increment(self, key: str, value: int = 1) -> None:
        with self._lock:
            self._counters[key] += value

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def finish(self) -> None:
        with self._lock:
            if self._finished_at is None:
                self._finished_at = datetime.now(timezone.utc)

    def snapshot(self) -> dict[str, Any]:
        """Return counters plus timing as a JSON-friendly dict."""

        with self._lock:
            end = self._finished_at or datetime.now(timezone.utc)
            payload: dict[str, Any] = dict(sorted(self._counters.items()))
            payload["started_at"] = self._started_at.isoformat(timespec="seconds")
            payload["finished_at"] = (
                None if self._finished_at is None else self._finished_at.isoformat(timespec="seconds")
            )
            payload["duration_seconds"] = round((end - self._started_at).total_seconds(), 3)
            return payload


__all__ = ["StatsCollector"]
