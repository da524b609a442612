import unittest
from dataclasses import replace

from biaz.ingestion.feeds import default_sources, parse_dt, parse_feed, rss_source, search_source

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
<channel>
<title>Tech</title>
<item>
  <title>Nvidia stock jumps after earnings</title>
  <link>https://www.example.com/nvidia?utm_source=rss</link>
  <description>&lt;p&gt;Nvidia beat estimates.&lt;/p&gt;</description>
  <pubDate>Wed, 22 May 2024 20:30:00 GMT</pubDate>
  <enclosure url="https://cdn.example.com/nvda.jpg" type="image/jpeg" length="100"/>
</item>
<item>
  <title>Startup raises seed round</title>
  <link>https://www.example.com/startup</link>
  <media:content url="https://cdn.example.com/startup.jpg" medium="image"/>
</item>
<item>
  <title>No link here</title>
</item>
</channel>
</rss>
"""


class TestFeedParsing(unittest.TestCase):
    def test_items_normalized(self):
        items = parse_feed(RSS, rss_source("https://www.example.com/feed"))
        self.assertEqual(len(items), 3)
        first = items[0]
        self.assertEqual(first.title, "Nvidia stock jumps after earnings")
        self.assertEqual(first.description, "Nvidia beat estimates.")
        self.assertEqual(first.image_url, "https://cdn.example.com/nvda.jpg")
        self.assertEqual(first.published_at.day, 22)
        self.assertEqual(first.source_domain, "example.com")
        self.assertEqual(items[1].image_url, "https://cdn.example.com/startup.jpg")
        self.assertEqual(items[2].url, "")

    def test_examined_cap(self):
        source = search_source("Apple stock")
        self.assertEqual(source.max_examined, 10)
        self.assertEqual(source.max_new, 3)
        self.assertIn("q=Apple+stock", source.url)
        capped = parse_feed(RSS, replace(source, max_examined=1))
        self.assertEqual(len(capped), 1)

    def test_default_sources(self):
        sources = default_sources()
        self.assertEqual(len(sources), 7)
        self.assertEqual([s.kind for s in sources].count("search"), 4)
        self.assertEqual(default_sources(["https://feeds.example.com/rss"], ["chips"])[0].max_new, 5)

    def test_parse_dt_formats(self):
        self.assertEqual(parse_dt("2024-05-22T20:30:00Z").hour, 20)
        self.assertEqual(parse_dt("Wed, 22 May 2024 20:30:00 GMT").hour, 20)
        self.assertIsNone(parse_dt("not a date"))
        self.assertIsNotNone(parse_dt("2024-05-22 20:30:00").tzinfo)


if __name__ == "__main__":
    unittest.main()
