"""robots.txt retrieval and path checks."""

from __future__ import annotations

import logging
import math
from urllib.parse import unquote, urlsplit
from urllib.robotparser import RobotFileParser

import requests

from .constants import DEFAULT_ROBOTS_TIMEOUT_SECONDS, ROBOTS_USER_AGENT
from .types import RobotsRules


LOGGER = logging.getLogger(__name__)


def _applicable_entry(parser: RobotFileParser, user_agent: str):
    for entry in parser.entries:
        if entry.applies_to(user_agent):
            return entry
    return parser.default_entry


def _crawl_delay_seconds(text: str, user_agent: str) -> float | None:
    """Crawl-delay of the group applying to `user_agent`, decimals allowed.

    `RobotFileParser` drops non-integer delays, so groups are re-read here
    with the same agent matching it uses for rules.
    """

    groups: list[tuple[list[str], float | None]] = []
    agents: list[str] = []
    delay: float | None = None
    in_agent_lines = False

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            if not in_agent_lines:
                if agents:
                    groups.append((agents, delay))
                agents, delay = [], None
            agents.append(value.lower())
            in_agent_lines = True
            continue

        in_agent_lines = False
        if key == "crawl-delay" and agents:
            try:
                parsed = float(value)
            except ValueError:
                LOGGER.debug("Ignoring malformed Crawl-delay %r", value)
                continue
            if math.isfinite(parsed) and parsed >= 0:
                delay = parsed
    if agents:
        groups.append((agents, delay))

    token = user_agent.split("/")[0].lower()
    fallback: float | None = None
    for group_agents, group_delay in groups:
        if "*" in group_agents:
            if fallback is None:
                fallback = group_delay
            continue
        if any(agent in token for agent in group_agents):
            return group_delay
    return fallback


def parse_robots(text: str, *, user_agent: str = ROBOTS_USER_AGENT) -> RobotsRules:
    """Parse robots.txt content into the rules for `user_agent` (or `*`)."""

    parser = RobotFileParser()
    parser.parse(text.splitlines())

    entry = _applicable_entry(parser, user_agent)
    disallowed: frozenset[str] = frozenset()
    if entry is not None:
        disallowed = frozenset(
            unquote(line.path)
            for line in entry.rulelines
            if not line.allowance and line.path
        )

    crawl_delay_ms: int | None = None
    delay = _crawl_delay_seconds(text, user_agent)
    if delay is not None:
        crawl_delay_ms = int(round(delay * 1000))

    return RobotsRules(disallowed_paths=disallowed, crawl_delay_ms=crawl_delay_ms)


class RobotsGate:
    """Fetch and evaluate robots.txt rules for a domain.

    Every failure is treated as "no rules" so a broken robots.txt never stalls a crawl.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_ROBOTS_TIMEOUT_SECONDS,
        user_agent: str = ROBOTS_USER_AGENT,
        http: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._http = http

    def fetch_rules(self, domain: str) -> RobotsRules | None:
        robots_url = f"https://{domain}/robots.txt"
        getter = self._http.get if self._http is not None else requests.get

        try:
            response = getter(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOGGER.error("Failed to fetch %s: %s", robots_url, exc)
            return None

        if response.status_code == 404:
            LOGGER.info("No robots.txt for %s", domain)
            return None
        if response.status_code != 200:
            LOGGER.warning("robots.txt for %s returned HTTP %d", domain, response.status_code)
            return None

        try:
            rules = parse_robots(response.text, user_agent=self.user_agent)
        except Exception:
            LOGGER.exception("Failed to parse %s", robots_url)
            return None

        LOGGER.info(
            "robots.txt for %s: %d disallowed paths, crawl-delay=%s ms",
            domain,
            len(rules.disallowed_paths),
            rules.crawl_delay_ms,
        )
        return rules


def is_allowed(url: str, rules: RobotsRules | None) -> bool:
    """Return False if the URL path (plus query) starts with a disallowed prefix."""

    if rules is None or not rules.disallowed_paths:
        return True

    try:
        parsed = urlsplit(url)
    except ValueError:
        return True

    target = unquote(parsed.path or "/")
    if parsed.query:
        target += "?" + unquote(parsed.query)

    return not any(target.startswith(prefix) for prefix in rules.disallowed_paths)


__all__ = [
    "RobotsGate",
    "is_allowed",
    "parse_robots",
]
