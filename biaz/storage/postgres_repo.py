"""Postgres repository for articles, stocks, forecasts and tasks.

Plain psycopg + SQL; one connection per operation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from biaz.errors import IngestionRejected, RejectionReason
from biaz.storage.records import Article, Claim, Forecast, Source, StockQuote, Task, new_id
from biaz.symbols.known_symbols import placeholder_info

logger = logging.getLogger(__name__)

TASK_FIELDS = ("status", "progress", "message", "result", "error_message", "completed_at")


class _UrlConflict(Exception):
    pass


def _article_from_row(row: Mapping[str, Any]) -> Article:
    return Article(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        summary=row["summary"] or "",
        forecast_summary=row.get("forecast_summary"),
        image_url=row.get("image_url"),
        published_at=row.get("published_at"),
        source_id=row.get("source_id"),
        truth_score=float(row["truth_score"]),
        impact_sentiment=row["impact_sentiment"],
        explanation=row["explanation"] or "",
        created_at=row.get("created_at"),
    )


def _task_from_row(row: Mapping[str, Any]) -> Task:
    return Task(
        id=row["id"],
        type=row["type"],
        status=row["status"],
        input=row["input"] or {},
        result=row.get("result"),
        progress=int(row["progress"] or 0),
        message=row.get("message"),
        error_message=row.get("error_message"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        completed_at=row.get("completed_at"),
    )


def _forecast_from_row(row: Mapping[str, Any]) -> Forecast:
    return Forecast(
        id=row["id"],
        article_id=row["article_id"],
        symbol=row["symbol"],
        sentiment=row["sentiment"],
        impact_score=float(row["impact_score"]),
        price_target=float(row["price_target"]),
        time_horizon=row["time_horizon"],
        confidence=float(row["confidence"]),
        reasoning=row["reasoning"],
        created_at=row.get("created_at"),
    )


class PostgresRepo:
    def __init__(self, pg_dsn: str):
        self.pg_dsn = pg_dsn

    async def _connect(self) -> psycopg.AsyncConnection:
        return await psycopg.AsyncConnection.connect(self.pg_dsn, autocommit=True, row_factory=dict_row)

    # -----------------------------
    # Articles
    # -----------------------------
    async def _load_article(self, conn: psycopg.AsyncConnection, row: Mapping[str, Any]) -> Article:
        article = _article_from_row(row)
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT symbol, relation FROM article_symbols WHERE article_id = %s ORDER BY relation DESC, symbol",
                (article.id,),
            )
            for r in await cur.fetchall():
                target = article.symbols_affected if r["relation"] == "affected" else article.symbols_mentioned
                target.append(r["symbol"])
            await cur.execute(
                """
                SELECT c.id, c.text, c.verified, c.confidence,
                       COALESCE(array_agg(ce.url ORDER BY ce.id) FILTER (WHERE ce.url IS NOT NULL), '{}') AS evidence
                FROM claims c
                LEFT JOIN claim_evidence ce ON ce.claim_id = c.id
                WHERE c.article_id = %s
                GROUP BY c.id, c.position
                ORDER BY c.position
                """,
                (article.id,),
            )
            for r in await cur.fetchall():
                article.claims.append(
                    Claim(
                        id=r["id"],
                        text=r["text"],
                        verified=bool(r["verified"]),
                        confidence=float(r["confidence"]),
                        evidence_links=list(r["evidence"] or []),
                    )
                )
        return article

    async def get_article(self, article_id: str) -> Optional[Article]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT * FROM articles WHERE id = %s", (article_id,))
                row = await cur.fetchone()
            return await self._load_article(conn, row) if row else None

    async def find_article_by_url(self, url: str) -> Optional[Article]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT * FROM articles WHERE url = %s", (url,))
                row = await cur.fetchone()
            return await self._load_article(conn, row) if row else None

    async def _exists(self, sql: str, value: Any) -> bool:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, (value,))
                return (await cur.fetchone()) is not None

    async def article_exists(self, url: str) -> bool:
        return await self._exists("SELECT 1 FROM articles WHERE url = %s LIMIT 1", url)

    async def title_exists(self, title: str) -> bool:
        return await self._exists("SELECT 1 FROM articles WHERE title = %s LIMIT 1", title)

    async def image_in_use(self, image_url: str) -> bool:
        return await self._exists("SELECT 1 FROM articles WHERE image_url = %s LIMIT 1", image_url)

    async def persist_article(
        self,
        article: Article,
        source: Optional[Source],
        quotes: Mapping[str, Optional[StockQuote]],
    ) -> Article:
        """Write source, article, symbols, stocks, claims and evidence as one unit.

        A concurrent insert of the same URL yields the stored article with
        `created=False`; a different URL already holding the title raises
        `IngestionRejected`.
        """
        try:
            async with await self._connect() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        # Serialize writers of one title so the duplicate check holds until commit
                        await cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (article.title,))
                        await cur.execute(
                            "SELECT 1 FROM articles WHERE title = %s AND url <> %s LIMIT 1",
                            (article.title, article.url),
                        )
                        if await cur.fetchone() is not None:
                            raise IngestionRejected(RejectionReason.DUPLICATE_TITLE, article.title[:120])
                        if source is not None:
                            article.source_id = await self._ensure_source(cur, source)
                        await cur.execute(
                            """
                            INSERT INTO articles (
                              id, url, title, summary, forecast_summary, image_url, published_at,
                              source_id, truth_score, impact_sentiment, explanation
                            )
                            VALUES (
                              %(id)s, %(url)s, %(title)s, %(summary)s, %(forecast_summary)s, %(image_url)s,
                              %(published_at)s, %(source_id)s, %(truth_score)s, %(impact_sentiment)s,
                              %(explanation)s
                            )
                            ON CONFLICT (url) DO NOTHING
                            RETURNING created_at
                            """,
                            {
                                "id": article.id,
                                "url": article.url,
                                "title": article.title,
                                "summary": article.summary,
                                "forecast_summary": article.forecast_summary,
                                "image_url": article.image_url,
                                "published_at": article.published_at,
                                "source_id": article.source_id,
                                "truth_score": article.truth_score,
                                "impact_sentiment": article.impact_sentiment,
                                "explanation": article.explanation,
                            },
                        )
                        inserted = await cur.fetchone()
                        if inserted is None:
                            raise _UrlConflict(article.url)
                        article.created_at = inserted["created_at"]

                    for symbol in article.symbols:
                        await self._upsert_stock_savepoint(conn, symbol, quotes.get(symbol))

                    async with conn.cursor() as cur:
                        for symbol in article.symbols_mentioned:
                            await self._link_symbol(cur, article.id, symbol, "mentioned")
                        for symbol in article.symbols_affected:
                            if symbol not in article.symbols_mentioned:
                                await self._link_symbol(cur, article.id, symbol, "affected")
                        for position, claim in enumerate(article.claims):
                            claim.id = claim.id or new_id("clm")
                            await cur.execute(
                                """
                                INSERT INTO claims (id, article_id, position, text, verified, confidence)
                                VALUES (%s, %s, %s, %s, %s, %s)
                                """,
                                (claim.id, article.id, position, claim.text, claim.verified, claim.confidence),
                            )
                            for link in claim.evidence_links:
                                await cur.execute(
                                    "INSERT INTO claim_evidence (claim_id, url) VALUES (%s, %s)",
                                    (claim.id, link),
                                )
        except (_UrlConflict, psycopg.errors.UniqueViolation) as e:
            logger.info(f"Article already stored for {article.url} ({type(e).__name__})")
            existing = await self.find_article_by_url(article.url)
            if existing is None:
                raise
            existing.created = False
            return existing
        article.created = True
        return article

    async def _ensure_source(self, cur: psycopg.AsyncCursor, source: Source) -> str:
        await cur.execute(
            """
            INSERT INTO sources (id, domain, name, credibility_score, category, verified)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (domain) DO NOTHING
            """,
            (source.id, source.domain, source.name, source.credibility_score, source.category, source.verified),
        )
        await cur.execute("SELECT id FROM sources WHERE domain = %s", (source.domain,))
        return (await cur.fetchone())["id"]

    async def _link_symbol(self, cur: psycopg.AsyncCursor, article_id: str, symbol: str, relation: str) -> None:
        await cur.execute(
            """
            INSERT INTO article_symbols (article_id, symbol, relation)
            VALUES (%s, %s, %s)
            ON CONFLICT (article_id, symbol) DO NOTHING
            """,
            (article_id, symbol, relation),
        )

    async def _upsert_stock_savepoint(
        self, conn: psycopg.AsyncConnection, symbol: str, quote: Optional[StockQuote]
    ) -> None:
        try:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await self._write_stock(cur, symbol, quote)
        except psycopg.Error as e:
            logger.warning(f"Stock upsert failed for {symbol}, continuing: {e}")

    async def _write_stock(self, cur: psycopg.AsyncCursor, symbol: str, quote: Optional[StockQuote]) -> None:
        if quote is None:
            name, exchange, sector = placeholder_info(symbol)
            await cur.execute(
                """
                INSERT INTO stocks (symbol, name, exchange, sector)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (symbol) DO NOTHING
                """,
                (symbol, name, exchange, sector),
            )
            return
        await cur.execute(
            """
            INSERT INTO stocks (symbol, name, exchange, sector, current_price, change, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (symbol) DO UPDATE SET
              name = EXCLUDED.name,
              exchange = EXCLUDED.exchange,
              sector = EXCLUDED.sector,
              current_price = EXCLUDED.current_price,
              change = EXCLUDED.change,
              updated_at = EXCLUDED.updated_at
            """,
            (
                symbol,
                quote.name,
                quote.exchange,
                quote.sector,
                quote.current_price,
                quote.change_percent,
                quote.updated_at or datetime.now(timezone.utc),
            ),
        )

    async def update_article_score(
        self, article_id: str, truth_score: float, explanation: str, claims: List[Claim]
    ) -> None:
        async with await self._connect() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        UPDATE articles SET truth_score = %s, explanation = %s, updated_at = now()
                        WHERE id = %s
                        """,
                        (truth_score, explanation, article_id),
                    )
                    for claim in claims:
                        if not claim.id:
                            continue
                        await cur.execute(
                            "UPDATE claims SET verified = %s, confidence = %s WHERE id = %s AND article_id = %s",
                            (claim.verified, claim.confidence, claim.id, article_id),
                        )
                        await cur.execute("DELETE FROM claim_evidence WHERE claim_id = %s", (claim.id,))
                        for link in claim.evidence_links:
                            await cur.execute(
                                "INSERT INTO claim_evidence (claim_id, url) VALUES (%s, %s)",
                                (claim.id, link),
                            )

    async def articles_missing_images(self, limit: int = 50) -> List[Article]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT * FROM articles WHERE image_url IS NULL ORDER BY created_at DESC LIMIT %s",
                    (limit,),
                )
                rows = await cur.fetchall()
            return [await self._load_article(conn, r) for r in rows]

    async def set_article_image(self, article_id: str, image_url: str) -> None:
        async with await self._connect() as conn:
            await conn.execute(
                "UPDATE articles SET image_url = %s, updated_at = now() WHERE id = %s AND image_url IS NULL",
                (image_url, article_id),
            )

    # -----------------------------
    # Stocks
    # -----------------------------
    async def upsert_stock(self, quote: StockQuote) -> None:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await self._write_stock(cur, quote.symbol, quote)

    async def stocks_needing_update(self, max_age_minutes: int = 15) -> List[str]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT symbol FROM stocks
                    WHERE updated_at IS NULL OR updated_at < now() - make_interval(mins => %s)
                    ORDER BY symbol
                    """,
                    (max_age_minutes,),
                )
                return [r["symbol"] for r in await cur.fetchall()]

    # -----------------------------
    # Forecasts
    # -----------------------------
    async def get_forecast(self, article_id: str, symbol: str) -> Optional[Forecast]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT * FROM forecasts WHERE article_id = %s AND symbol = %s", (article_id, symbol)
                )
                row = await cur.fetchone()
        return _forecast_from_row(row) if row else None

    async def insert_forecast(self, forecast: Forecast) -> Forecast:
        """Insert, or return the forecast another writer stored first."""
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO forecasts (
                      id, article_id, symbol, sentiment, impact_score, price_target, time_horizon,
                      confidence, reasoning
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (article_id, symbol) DO NOTHING
                    """,
                    (
                        forecast.id,
                        forecast.article_id,
                        forecast.symbol,
                        forecast.sentiment,
                        forecast.impact_score,
                        forecast.price_target,
                        forecast.time_horizon,
                        forecast.confidence,
                        forecast.reasoning,
                    ),
                )
        stored = await self.get_forecast(forecast.article_id, forecast.symbol)
        return stored or forecast

    # -----------------------------
    # Tasks
    # -----------------------------
    async def create_task(self, task: Task) -> None:
        async with await self._connect() as conn:
            await conn.execute(
                """
                INSERT INTO tasks (id, type, status, input, progress, message)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (task.id, task.type, task.status, Jsonb(task.input), task.progress, task.message),
            )

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT * FROM tasks WHERE id = %s", (task_id,))
                row = await cur.fetchone()
        return _task_from_row(row) if row else None

    async def update_task(self, task_id: str, **fields: Any) -> None:
        updates: Dict[str, Any] = {k: v for k, v in fields.items() if k in TASK_FIELDS}
        if not updates:
            return
        if "result" in updates and updates["result"] is not None:
            updates["result"] = Jsonb(updates["result"])
        assignments = ", ".join(f"{k} = %({k})s" for k in updates)
        updates["id"] = task_id
        async with await self._connect() as conn:
            await conn.execute(
                f"UPDATE tasks SET {assignments}, updated_at = now() WHERE id = %(id)s",
                updates,
            )
