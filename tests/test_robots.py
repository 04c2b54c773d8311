import threading
import time
from unittest.mock import MagicMock

import requests

from conftest import make_response
from webscraper.crawler.ratelimit import NoopRateLimiter, RateLimiter, rate_limiter_for_delay
from webscraper.crawler.robots import RobotsGate, is_allowed, parse_robots
from webscraper.crawler.types import RobotsRules


ROBOTS_TXT = """
User-agent: *
Disallow: /private
Disallow: /tmp/
Allow: /public
Crawl-delay: 2
"""


class TestParseRobots:
    def test_disallowed_paths_and_delay(self):
        rules = parse_robots(ROBOTS_TXT)
        assert rules.disallowed_paths == frozenset({"/private", "/tmp/"})
        assert rules.crawl_delay_ms == 2000

    def test_specific_agent_entry_wins(self):
        text = "User-agent: mozilla\nDisallow: /only-for-browsers\n\nUser-agent: *\nDisallow: /everyone\n"
        rules = parse_robots(text, user_agent="Mozilla/5.0 (X11)")
        assert rules.disallowed_paths == frozenset({"/only-for-browsers"})

    def test_fractional_crawl_delay(self):
        rules = parse_robots("User-agent: *\nDisallow: /x\nCrawl-delay: 0.5\n")
        assert rules.disallowed_paths == frozenset({"/x"})
        assert rules.crawl_delay_ms == 500

    def test_crawl_delay_from_matching_group(self):
        text = (
            "User-agent: *\nCrawl-delay: 10\n\n"
            "User-agent: otherbot\nUser-agent: mozilla\nDisallow: /m\nCrawl-delay: 1.25\n"
        )
        assert parse_robots(text, user_agent="Mozilla/5.0").crawl_delay_ms == 1250
        assert parse_robots(text, user_agent="SomeBot/1.0").crawl_delay_ms == 10_000

    def test_malformed_crawl_delay_ignored(self):
        rules = parse_robots("User-agent: *\nCrawl-delay: soon\n")
        assert rules.crawl_delay_ms is None

    def test_empty_file(self):
        rules = parse_robots("")
        assert rules.disallowed_paths == frozenset()
        assert rules.crawl_delay_ms is None


class TestIsAllowed:
    def test_no_rules_allows_everything(self):
        assert is_allowed("http://example.com/private", None)

    def test_prefix_match(self):
        rules = RobotsRules(disallowed_paths=frozenset({"/private"}))
        assert not is_allowed("http://example.com/private", rules)
        assert not is_allowed("http://example.com/private/deeper?x=1", rules)
        assert is_allowed("http://example.com/public", rules)
        assert is_allowed("http://example.com", rules)

    def test_query_prefix(self):
        rules = RobotsRules(disallowed_paths=frozenset({"/search?q="}))
        assert not is_allowed("http://example.com/search?q=cats", rules)
        assert is_allowed("http://example.com/search", rules)


class TestRobotsGate:
    def test_fetch_parses_rules(self):
        http = MagicMock()
        http.get.return_value = make_response(200, ROBOTS_TXT.encode(), "text/plain")
        rules = RobotsGate(http=http).fetch_rules("example.com")

        assert rules.disallowed_paths == frozenset({"/private", "/tmp/"})
        args, kwargs = http.get.call_args
        assert args[0] == "https://example.com/robots.txt"
        assert kwargs["timeout"] == 10.0
        assert "User-Agent" in kwargs["headers"]

    def test_not_found_is_none(self):
        http = MagicMock()
        http.get.return_value = make_response(404, b"", "text/plain")
        assert RobotsGate(http=http).fetch_rules("example.com") is None

    def test_server_error_is_none(self):
        http = MagicMock()
        http.get.return_value = make_response(500, b"", "text/plain")
        assert RobotsGate(http=http).fetch_rules("example.com") is None

    def test_network_error_fails_open(self):
        http = MagicMock()
        http.get.side_effect = requests.ConnectionError("down")
        assert RobotsGate(http=http).fetch_rules("example.com") is None


class TestRateLimiter:
    def test_permits_are_spaced(self):
        sleeps = []
        limiter = rate_limiter_for_delay(500, clock=lambda: 100.0, sleep=sleeps.append)

        assert isinstance(limiter, RateLimiter)
        assert limiter.permits_per_second == 2.0
        for _ in range(3):
            limiter.acquire()
        assert sleeps == [0.5, 1.0]

    def test_elapsed_time_frees_permits(self):
        now = [0.0]
        sleeps = []
        limiter = RateLimiter(1.0, clock=lambda: now[0], sleep=sleeps.append)

        limiter.acquire()
        now[0] = 5.0
        limiter.acquire()
        assert sleeps == []

    def test_cancel_event_interrupts_wait(self):
        sleep = MagicMock()
        limiter = RateLimiter(0.01, clock=lambda: 100.0, sleep=sleep)
        canceled = threading.Event()
        canceled.set()

        limiter.acquire(canceled)
        started = time.monotonic()
        assert limiter.acquire(canceled) == 100.0
        assert time.monotonic() - started < 1.0
        sleep.assert_not_called()

    def test_zero_delay_is_noop(self):
        assert isinstance(rate_limiter_for_delay(0), NoopRateLimiter)
        assert isinstance(rate_limiter_for_delay(None), NoopRateLimiter)
        assert rate_limiter_for_delay(0).acquire() == 0.0
