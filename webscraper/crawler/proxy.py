"""Round-robin proxy selection and one-shot proxy health checks."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Sequence

import requests
import urllib3

from .constants import DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS, DEFAULT_PROXY_CHECK_URL
from .types import ProxyInfo


LOGGER = logging.getLogger(__name__)


class ProxyPool:
    """Thread-safe round-robin over a fixed list of proxies.

    The cursor only ever increases; selection is `proxies[cursor % len]`.
    """

    def __init__(self, proxies: Iterable[ProxyInfo] | None = None) -> None:
        self._proxies: tuple[ProxyInfo, ...] = tuple(proxies or ())
        self._lock = threading.Lock()
        self._cursor = 0

    def select(self) -> ProxyInfo | None:
        if not self._proxies:
            return None
        with self._lock:
            index = self._cursor
            self._cursor += 1
        return self._proxies[index % len(self._proxies)]

    @property
    def proxies(self) -> tuple[ProxyInfo, ...]:
        return self._proxies

    def __len__(self) -> int:
        return len(self._proxies)


def check_proxy(
    proxy: ProxyInfo,
    *,
    check_url: str = DEFAULT_PROXY_CHECK_URL,
    timeout: float = DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS,
) -> bool:
    """Return True if a GET through `proxy` answers 200."""

    try:
        response = requests.get(
            check_url,
            proxies=proxy.as_requests_proxies(),
            timeout=timeout,
            verify=False,
        )
    except requests.RequestException as exc:
        LOGGER.info("Proxy %s failed health check: %s", proxy, exc)
        return False

    if response.status_code != 200:
        LOGGER.info("Proxy %s failed health check: HTTP %d", proxy, response.status_code)
        return False
    return True


def filter_working_proxies(
    proxies: Sequence[ProxyInfo] | None,
    *,
    check_url: str = DEFAULT_PROXY_CHECK_URL,
    timeout: float = DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS,
) -> list[ProxyInfo]:
    """Probe every proxy once, concurrently, and keep the healthy ones in input order."""

    candidates = list(proxies or ())
    if not candidates:
        return []

    # Certificate checks are off for the probe only.
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    with ThreadPoolExecutor(
        max_workers=min(16, len(candidates)),
        thread_name_prefix="proxy-check",
    ) as executor:
        results = list(
            executor.map(
                lambda proxy: check_proxy(proxy, check_url=check_url, timeout=timeout),
                candidates,
            )
        )

    working = [proxy for proxy, ok in zip(candidates, results) if ok]
    LOGGER.info("Proxy health check: %d/%d usable", len(working), len(candidates))
    return working


__all__ = [
    "ProxyPool",
    "check_proxy",
    "filter_working_proxies",
]
