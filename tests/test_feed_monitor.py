import asyncio
import unittest

import httpx
from fakes import FakeAcquirer, MemoryRepo

from biaz.errors import IngestionRejected, PipelineError, RejectionReason
from biaz.extraction.acquire import FetchStrategy
from biaz.ingestion.feeds import FeedSource
from biaz.monitor.feed_monitor import FeedMonitor, MonitorStats, has_stock_keywords
from biaz.storage.records import Article

from test_acquisition import make_client

FEED_URL = "https://feeds.example.com/markets.xml"


def rss(items):
    body = "".join(
        f"<item><title>{title}</title>" + (f"<link>{link}</link>" if link else "") + "</item>"
        for title, link in items
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>Markets</title>{body}</channel></rss>'


def stored(url):
    return Article(
        id="art_" + url.rsplit("/", 1)[1],
        url=url,
        title="stored",
        summary="",
        truth_score=0.5,
        impact_sentiment="neutral",
        explanation="",
    )


class RacingOrchestrator:
    """Feed strategy fails, managed hangs, plain HTTP wins."""

    def __init__(self):
        self.calls = []
        self.cancelled = []

    async def ingest(self, url=None, feed_item=None, strategy=None, **kwargs):
        self.calls.append((url, strategy))
        if url.endswith("/rejected"):
            raise IngestionRejected(RejectionReason.NO_SYMBOLS)
        if url.endswith("/broken"):
            raise PipelineError("nothing worked")
        if strategy == FetchStrategy.FEED:
            raise PipelineError("feed body too short")
        if strategy == FetchStrategy.MANAGED:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.cancelled.append(url)
                raise
        await asyncio.sleep(0)
        return stored(url)


def feed_routes(text):
    return {
        ("GET", FEED_URL): lambda r: httpx.Response(200, text=text, headers={"content-type": "application/rss+xml"}),
        ("HEAD", "https://news.google.com/"): lambda r: httpx.Response(
            302, headers={"location": "https://www.example.com/winner?utm_source=gn"}
        ),
        ("HEAD", "https://www.example.com/"): lambda r: httpx.Response(200),
    }


class TestKeywordFilter(unittest.TestCase):
    def test_keywords(self):
        self.assertTrue(has_stock_keywords("Apple shares slip"))
        self.assertTrue(has_stock_keywords("NVDA hits a record"))
        self.assertFalse(has_stock_keywords("Weekend recipes"))


class TestFeedMonitor(unittest.IsolatedAsyncioTestCase):
    async def test_tally_of_one_cycle(self):
        text = rss(
            [
                ("Concert listings", "https://www.example.com/concerts"),
                ("Weekend recipes", "https://www.example.com/recipes"),
                ("Travel ideas", "https://www.example.com/travel"),
                ("Gardening tips", "https://www.example.com/garden"),
                ("Movie reviews", "https://www.example.com/movies"),
                ("Local sports", "https://www.example.com/sports"),
                ("Tesla stock slides", "https://www.example.com/known-1"),
                ("Apple earnings preview", "https://www.example.com/known-2"),
                ("Market chatter about bakeries", "https://www.example.com/rejected"),
                ("Nvidia shares jump", "https://news.google.com/rss/articles/abc"),
            ]
        )
        repo = MemoryRepo()
        for url in ("https://www.example.com/known-1", "https://www.example.com/known-2"):
            repo.articles[url] = stored(url)
        orchestrator = RacingOrchestrator()
        source = FeedSource(name="markets", url=FEED_URL)
        async with make_client(feed_routes(text)) as client:
            monitor = FeedMonitor(client, repo, orchestrator, FakeAcquirer(), [source])
            stats = await monitor.run_once()

        self.assertEqual(
            stats.as_dict(),
            {"found": 10, "ingested": 1, "cached": 2, "skipped": 6, "rejected": {"no_symbols": 1}, "failed": 0},
        )
        winner_calls = [s for u, s in orchestrator.calls if u == "https://www.example.com/winner"]
        self.assertCountEqual(winner_calls, [FetchStrategy.FEED, FetchStrategy.MANAGED, FetchStrategy.HTTP])
        self.assertEqual(orchestrator.cancelled, ["https://www.example.com/winner"])

    async def test_items_without_link_are_found_but_not_skipped(self):
        titles = ["Weekend recipes", "Travel ideas", "Gardening tips", "Movie reviews", "Local sports", "Concerts"]
        text = rss([("Stock with no link", None)] + [(t, f"https://www.example.com/{i}") for i, t in enumerate(titles)])
        orchestrator = RacingOrchestrator()
        async with make_client(feed_routes(text)) as client:
            monitor = FeedMonitor(client, MemoryRepo(), orchestrator, FakeAcquirer(), [FeedSource("m", FEED_URL)])
            stats = await monitor.run_once()
        self.assertEqual(stats.found, 7)
        self.assertEqual(stats.skipped, 6)
        self.assertEqual(stats.failed, 0)
        self.assertEqual(orchestrator.calls, [])

    async def test_new_item_limit_and_failures(self):
        text = rss(
            [
                ("Stock one", "https://www.example.com/broken"),
                ("Stock two", "https://www.example.com/a"),
                ("Stock three", "https://www.example.com/b"),
            ]
        )
        source = FeedSource(name="markets", url=FEED_URL, max_new=1)
        async with make_client(feed_routes(text)) as client:
            monitor = FeedMonitor(client, MemoryRepo(), RacingOrchestrator(), FakeAcquirer(managed=False), [source])
            stats = await monitor.run_once()
        self.assertEqual(stats.failed, 1)
        self.assertEqual(stats.ingested, 1)
        self.assertEqual(stats.found, 2)

    async def test_search_sources_skip_keyword_filter(self):
        text = rss([("Weekend recipes", "https://www.example.com/recipes")])
        source = FeedSource(name="search", url=FEED_URL, kind="search", keyword_filter=False)
        async with make_client(feed_routes(text)) as client:
            monitor = FeedMonitor(client, MemoryRepo(), RacingOrchestrator(), FakeAcquirer(managed=False), [source])
            stats = await monitor.run_once()
        self.assertEqual(stats.ingested, 1)
        self.assertEqual(stats.skipped, 0)

    async def test_feed_error_yields_empty_stats(self):
        routes = {("GET", FEED_URL): lambda r: httpx.Response(500)}
        async with make_client(routes) as client:
            monitor = FeedMonitor(client, MemoryRepo(), RacingOrchestrator(), FakeAcquirer(), [FeedSource("m", FEED_URL)])
            stats = await monitor.run_once()
        self.assertEqual(stats.as_dict(), MonitorStats().as_dict())


if __name__ == "__main__":
    unittest.main()
