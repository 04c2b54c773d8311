import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import FakeFetcher
from webscraper.crawler.engine import AdmitStatus, CrawlEngine, admit
from webscraper.crawler.fetcher import parse_document
from webscraper.crawler.storage import Storage
from webscraper.crawler.types import QueueItem, RobotsRules, SessionState


class TestAdmit:
    def test_gate_order(self, make_session):
        session = make_session(max_depth=1, robots_rules=RobotsRules(frozenset({"/private"})))

        def status(url, depth=1):
            return admit(QueueItem(url, session, depth))[0]

        assert status("http://example.com/public") == AdmitStatus.ADMITTED
        assert status("http://EXAMPLE.com:80/public") == AdmitStatus.SKIPPED_SEEN
        assert status("http://example.com/deep", depth=2) == AdmitStatus.SKIPPED_DEPTH
        assert status("http://other.com/x") == AdmitStatus.SKIPPED_OUT_OF_SCOPE
        assert status("http://example.com/private") == AdmitStatus.SKIPPED_ROBOTS
        assert status("not a url") == AdmitStatus.SKIPPED_INVALID_URL

    def test_rejected_urls_not_marked_visited(self, make_session):
        session = make_session(max_depth=0)
        admit(QueueItem("http://example.com/deep", session, 1))
        assert "http://example.com/deep" not in session.visited_links()

    def test_canceled_first(self, make_session):
        session = make_session()
        session.cancel()
        assert admit(QueueItem("http://example.com", session, 0))[0] == AdmitStatus.SKIPPED_CANCELED


@pytest.fixture
def engine_factory(small_config, tmp_path):
    engines = []

    def _make(fetcher, **kwargs):
        kwargs.setdefault("image_store", Storage(tmp_path / "state"))
        engine = CrawlEngine(small_config, fetcher=fetcher, **kwargs)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.shutdown()


class TestCrawlEngine:
    def test_end_to_end_scope(self, engine_factory, make_session):
        fetcher = FakeFetcher(
            {
                "http://example.com": (
                    "<a href='/public'>p</a><a href='/private'>x</a>"
                    "<a href='http://other.com/x'>o</a>"
                ),
                "http://example.com/public": "<a href='/deeper'>d</a>",
            }
        )
        engine = engine_factory(fetcher)
        session = make_session(max_depth=1, robots_rules=RobotsRules(frozenset({"/private"})))

        state = engine.submit(session).result(timeout=10)

        assert state == SessionState.COMPLETED
        assert session.visited_links() == {"http://example.com", "http://example.com/public"}
        assert sorted(fetcher.calls) == ["http://example.com", "http://example.com/public"]
        assert session.stats.get("skipped_depth") == 1
        assert session.stats.get("skipped_robots") == 1
        assert session.stats.get("skipped_out_of_scope") == 1

    def test_each_url_fetched_once(self, engine_factory, make_session):
        links = "".join(f"<a href='/p{i % 3}'>x</a>" for i in range(30))
        pages = {"http://example.com": links}
        pages.update({f"http://example.com/p{i}": "<a href='/'>home</a>" + links for i in range(3)})
        fetcher = FakeFetcher(pages)
        engine = engine_factory(fetcher)
        session = make_session(max_depth=3)

        engine.submit(session).result(timeout=10)

        assert sorted(fetcher.calls) == sorted(pages)

    def test_failed_fetch_is_dropped(self, engine_factory, make_session):
        fetcher = FakeFetcher({"http://example.com": "<a href='/missing'>m</a>"})
        engine = engine_factory(fetcher)
        session = make_session(max_depth=2)

        assert engine.submit(session).result(timeout=10) == SessionState.COMPLETED
        assert session.stats.get("fetch_failed") == 1

    def test_cancel_stops_further_fetches(self, engine_factory, make_session):
        started = threading.Event()
        release = threading.Event()
        calls = []

        class BlockingFetcher:
            def fetch(self, url, session):
                calls.append(url)
                started.set()
                release.wait(5)
                return parse_document(url, "<a href='/a'>a</a><a href='/b'>b</a>")

            def close(self):
                pass

        engine = engine_factory(BlockingFetcher())
        session = make_session(max_depth=5)
        completion = engine.submit(session)

        assert started.wait(5)
        session.cancel()
        release.set()

        assert completion.result(timeout=10) == SessionState.CANCELED
        assert calls == ["http://example.com"]

    def test_cancel_wakes_workers_waiting_on_crawl_delay(self, engine_factory, make_session):
        fetcher = FakeFetcher({"http://example.com": "<a href='/a'>a</a><a href='/b'>b</a><a href='/c'>c</a>"})
        engine = engine_factory(fetcher)
        session = make_session(max_depth=1, robots_rules=RobotsRules(crawl_delay_ms=3000))
        completion = engine.submit(session)

        deadline = time.monotonic() + 5
        while session.stats.get("links_discovered") < 3 and time.monotonic() < deadline:
            time.sleep(0.05)
        time.sleep(0.2)

        canceled_at = time.monotonic()
        session.cancel()

        assert completion.result(timeout=10) == SessionState.CANCELED
        assert time.monotonic() - canceled_at < 1.5
        assert fetcher.calls == ["http://example.com"]

    def test_handler_failure_is_isolated(self, small_config, make_session):
        fetcher = FakeFetcher({"http://example.com": "<p>hi</p>"})
        broken = MagicMock()
        broken.name = "broken"
        broken.handle.side_effect = RuntimeError("boom")
        recorder = MagicMock()
        recorder.name = "recorder"

        engine = CrawlEngine(small_config, fetcher=fetcher, handlers=[broken, recorder])
        try:
            session = make_session()
            assert engine.submit(session).result(timeout=10) == SessionState.COMPLETED
        finally:
            engine.shutdown()

        recorder.handle.assert_called_once()
        assert session.stats.get("handler_failed") == 1
        assert session.stats.get("documents_processed") == 1

    def test_shutdown_closes_owned_image_pipeline(self, small_config, tmp_path):
        engine = CrawlEngine(small_config, image_store=Storage(tmp_path / "state"), fetcher=FakeFetcher())
        engine.image_pipeline.close = MagicMock()

        engine.shutdown()

        engine.image_pipeline.close.assert_called_once_with()

    def test_needs_store_without_handlers(self, small_config):
        with pytest.raises(ValueError):
            CrawlEngine(small_config, fetcher=FakeFetcher())
