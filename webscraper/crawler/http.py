"""Shared HTTP plumbing: per-thread requests sessions and user-agent rotation."""

from __future__ import annotations

import random
import threading
from typing import Sequence

import requests

from .constants import USER_AGENTS


class ThreadLocalSessions:
    """Hand each worker thread its own `requests.Session`."""

    def __init__(self) -> None:
        self._thread_local = threading.local()
        self._lock = threading.Lock()
        self._sessions: list[requests.Session] = []

    def get(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()


def random_user_agent(pool: Sequence[str] = USER_AGENTS) -> str:
    return random.choice(pool or USER_AGENTS)


__all__ = [
    "ThreadLocalSessions",
    "random_user_agent",
]
