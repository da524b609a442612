import unittest

import httpx

from biaz.market.quotes import QuoteService, normalize_symbol, parse_daily_csv
from biaz.market.refresh import refresh_stale_quotes
from biaz.storage.records import StockQuote

from fakes import MemoryRepo

CSV = """Date,Open,High,Low,Close,Volume
2024-05-21,189.0,192.0,188.5,190.0,1000
2024-05-22,190.0,191.0,186.0,187.5,1200
"""


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestNormalizeSymbol(unittest.TestCase):
    def test_mapping(self):
        self.assertEqual(normalize_symbol("aapl"), "aapl.us")
        self.assertEqual(normalize_symbol("BRK.B"), "brk-b.us")
        self.assertIsNone(normalize_symbol("^VIX"))
        self.assertIsNone(normalize_symbol("NASDAQ:AAPL"))

    def test_csv_parsing_skips_bad_rows(self):
        bars = parse_daily_csv("aapl.us", CSV + "garbage,row\n")
        self.assertEqual([b.close for b in bars], [190.0, 187.5])
        self.assertEqual(parse_daily_csv("x.us", "No data"), [])


class TestQuoteService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests = []

        def handler(request):
            self.requests.append(request)
            if request.url.params.get("s") == "aapl.us":
                return httpx.Response(200, text=CSV)
            return httpx.Response(200, text="No data")

        self.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.clock = Clock()
        self.quotes = QuoteService(self.client, ttl_seconds=900, clock=self.clock)

    async def asyncTearDown(self):
        await self.client.aclose()

    async def test_price_and_change_from_last_two_closes(self):
        quote = await self.quotes.get_quote("AAPL")
        self.assertEqual(quote.current_price, 187.5)
        self.assertAlmostEqual(quote.change_percent, -1.32)
        self.assertEqual(quote.name, "Apple Inc.")
        self.assertEqual(quote.exchange, "NASDAQ")

    async def test_cached_for_ttl(self):
        await self.quotes.get_quote("AAPL")
        await self.quotes.get_quote("aapl")
        self.assertEqual(len(self.requests), 1)
        self.clock.now += 901
        await self.quotes.get_quote("AAPL")
        self.assertEqual(len(self.requests), 2)

    async def test_unknown_symbol(self):
        self.assertIsNone(await self.quotes.get_quote("ZZZZ"))

    async def test_refresh_stale_quotes(self):
        repo = MemoryRepo()
        repo.stocks["AAPL"] = StockQuote("AAPL", "Apple Inc.", "NASDAQ", "Technology")
        repo.stocks["ZZZZ"] = StockQuote("ZZZZ", "ZZZZ Inc.", "NASDAQ", "Unknown")
        updated = await refresh_stale_quotes(repo, self.quotes)
        self.assertEqual(updated, 1)
        self.assertEqual(repo.stocks["AAPL"].current_price, 187.5)
        self.assertIsNone(repo.stocks["ZZZZ"].current_price)


if __name__ == "__main__":
    unittest.main()
