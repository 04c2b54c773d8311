from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

from webscraper.crawler.errors import InvalidDataUri
from webscraper.crawler.fetcher import parse_document
from webscraper.crawler.handlers import ImageHandler, LinkHandler
from webscraper.crawler.images import ImageOutcome
from webscraper.crawler.queues import EnqueueResult, EnqueueStatus
from webscraper.crawler.types import QueueItem


PAGE = """
<a href="/a">a</a><a href="/b">b</a><a href="/pic.png">pic</a>
<img src="/one.png"><img src="/two.png"><img src="/one.png">
"""


def _doc_item(session, depth=0):
    return QueueItem(parse_document("http://example.com/", PAGE), session, depth)


class TestLinkHandler:
    def test_enqueues_links_one_level_deeper(self, make_session):
        enqueue = MagicMock(return_value=EnqueueResult(EnqueueStatus.ENQUEUED))
        session = make_session()

        LinkHandler(enqueue).handle(_doc_item(session, depth=2))

        items = [c.args[0] for c in enqueue.call_args_list]
        assert [i.payload for i in items] == ["http://example.com/a", "http://example.com/b"]
        assert all(i.depth == 3 and i.session is session for i in items)
        assert session.stats.get("links_discovered") == 2

    def test_stops_when_canceled(self, make_session):
        session = make_session()
        session.cancel()
        enqueue = MagicMock()
        LinkHandler(enqueue).handle(_doc_item(session))
        enqueue.assert_not_called()


class TestImageHandler:
    def test_each_new_image_processed_once(self, make_session):
        pipeline = MagicMock()
        pipeline.process.return_value = ImageOutcome.COMPRESSED
        session = make_session()
        session.task_started()

        with ThreadPoolExecutor(max_workers=2) as executor:
            handler = ImageHandler(pipeline, executor)
            handler.handle(_doc_item(session))
            handler.handle(_doc_item(session))

        urls = sorted(c.args[0] for c in pipeline.process.call_args_list)
        assert urls == [
            "http://example.com/one.png",
            "http://example.com/pic.png",
            "http://example.com/two.png",
        ]
        assert all(c.args[1] == "example.com" for c in pipeline.process.call_args_list)
        assert session.stats.get("images_compressed") == 3
        assert session.pending == 1

    def test_failures_are_contained(self, make_session):
        pipeline = MagicMock()
        pipeline.process.side_effect = [InvalidDataUri("bad"), RuntimeError("boom"), ImageOutcome.SKIPPED_SMALL]
        session = make_session()
        session.task_started()

        with ThreadPoolExecutor(max_workers=1) as executor:
            ImageHandler(pipeline, executor).handle(_doc_item(session))

        assert pipeline.process.call_count == 3
        assert session.stats.get("images_failed") == 2
        assert session.pending == 1
