import os
import unittest
from datetime import datetime, timezone

import psycopg

from biaz.errors import IngestionRejected, RejectionReason
from biaz.storage.postgres_repo import PostgresRepo
from biaz.storage.postgres_schema import ensure_postgres_schema
from biaz.storage.records import Article, Claim, Source, Task, TaskStatus, new_id

PG_DSN = os.environ.get("PG_DSN", "")


def make_article(url: str, title: str, symbols=("NVDA",)) -> Article:
    return Article(
        id=new_id("art"),
        url=url,
        title=title,
        summary="Quarterly revenue came in ahead of estimates.",
        truth_score=0.75,
        impact_sentiment="positive",
        explanation="High confidence",
        published_at=datetime(2024, 5, 22, 20, 30, tzinfo=timezone.utc),
        symbols_mentioned=list(symbols),
        claims=[
            Claim(text="Revenue was $26 billion.", verified=True, confidence=0.9, evidence_links=["https://sec.gov/x"])
        ],
    )


@unittest.skipUnless(PG_DSN, "PG_DSN not set")
class TestPostgresRepo(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        await ensure_postgres_schema(PG_DSN)
        self.repo = PostgresRepo(PG_DSN)
        self.run_id = new_id("run")
        self.source = Source(id=new_id("src"), domain="reuters.com", name="Reuters", credibility_score=0.9)

    async def count(self, sql: str, *params) -> int:
        async with await psycopg.AsyncConnection.connect(PG_DSN, autocommit=True) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                return (await cur.fetchone())[0]

    async def test_same_url_twice_keeps_one_row(self):
        url = f"https://www.reuters.com/e2e/{self.run_id}"
        first = await self.repo.persist_article(make_article(url, f"Nvidia beats {self.run_id}"), self.source, {})
        second = await self.repo.persist_article(make_article(url, f"Nvidia beats {self.run_id}"), self.source, {})
        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(second.id, first.id)
        self.assertEqual(await self.count("SELECT count(*) FROM articles WHERE url = %s", url), 1)

        stored = await self.repo.find_article_by_url(url)
        self.assertEqual(stored.symbols_mentioned, ["NVDA"])
        self.assertEqual([c.evidence_links for c in stored.claims], [["https://sec.gov/x"]])

    async def test_title_held_by_other_url_is_rejected(self):
        title = f"Nvidia beats {self.run_id}"
        await self.repo.persist_article(make_article(f"https://a.example.com/{self.run_id}", title), None, {})
        with self.assertRaises(IngestionRejected) as ctx:
            await self.repo.persist_article(make_article(f"https://b.example.com/{self.run_id}", title), None, {})
        self.assertEqual(ctx.exception.reason, RejectionReason.DUPLICATE_TITLE)
        self.assertEqual(await self.count("SELECT count(*) FROM articles WHERE title = %s", title), 1)

    async def test_unknown_ticker_gets_placeholder_stock(self):
        async with await psycopg.AsyncConnection.connect(PG_DSN, autocommit=True) as conn:
            await conn.execute("DELETE FROM stocks WHERE symbol = 'ZZZQ'")
        url = f"https://www.reuters.com/e2e/{self.run_id}-zzzq"
        await self.repo.persist_article(
            make_article(url, f"Tiny listing {self.run_id}", symbols=("ZZZQ",)), self.source, {"ZZZQ": None}
        )
        async with await psycopg.AsyncConnection.connect(PG_DSN, autocommit=True) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT name, exchange, sector, current_price FROM stocks WHERE symbol = 'ZZZQ'"
                )
                row = await cur.fetchone()
        self.assertEqual(row, ("ZZZQ Inc.", "NASDAQ", "Unknown", None))

    async def test_task_create_update_get(self):
        task_id = new_id("task")
        await self.repo.create_task(Task(id=task_id, type="ingest", status=TaskStatus.PENDING, input={"url": "x"}))
        pending = await self.repo.get_task(task_id)
        self.assertEqual(pending.status, TaskStatus.PENDING)
        self.assertEqual(pending.input, {"url": "x"})
        self.assertIsNone(pending.completed_at)

        await self.repo.update_task(
            task_id,
            status=TaskStatus.COMPLETED,
            progress=100,
            result={"articleId": "art_1"},
            completed_at=datetime.now(timezone.utc),
        )
        done = await self.repo.get_task(task_id)
        self.assertEqual(done.status, TaskStatus.COMPLETED)
        self.assertEqual(done.progress, 100)
        self.assertEqual(done.result, {"articleId": "art_1"})
        self.assertIsNotNone(done.completed_at)
        self.assertIsNone(await self.repo.get_task(new_id("task")))


if __name__ == "__main__":
    unittest.main()
