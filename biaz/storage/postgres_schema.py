"""Postgres schema management for the ingestion pipeline.

Schema creation is idempotent (CREATE IF NOT EXISTS).
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    # Sources (one row per publisher domain)
    """
    CREATE TABLE IF NOT EXISTS sources (
      id TEXT PRIMARY KEY,
      domain TEXT UNIQUE NOT NULL,
      name TEXT NOT NULL,
      credibility_score REAL NOT NULL DEFAULT 0.5,
      category TEXT NOT NULL DEFAULT 'news',
      verified BOOLEAN NOT NULL DEFAULT FALSE,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    # Articles (immutable after insert except re-scoring)
    """
    CREATE TABLE IF NOT EXISTS articles (
      id TEXT PRIMARY KEY,
      url TEXT NOT NULL UNIQUE,
      title TEXT NOT NULL,
      summary TEXT NOT NULL DEFAULT '',
      forecast_summary TEXT,
      image_url TEXT,
      published_at TIMESTAMPTZ,
      source_id TEXT REFERENCES sources(id),
      truth_score REAL NOT NULL DEFAULT 0.5,
      impact_sentiment TEXT NOT NULL DEFAULT 'neutral',
      explanation TEXT NOT NULL DEFAULT '',
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_title ON articles (title);",
    "CREATE INDEX IF NOT EXISTS idx_articles_image_url ON articles (image_url) WHERE image_url IS NOT NULL;",
    "CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles (published_at DESC);",
    # Stocks (refreshed opportunistically)
    """
    CREATE TABLE IF NOT EXISTS stocks (
      symbol TEXT PRIMARY KEY,
      name TEXT NOT NULL,
      exchange TEXT NOT NULL,
      sector TEXT NOT NULL,
      current_price REAL,
      change REAL,
      updated_at TIMESTAMPTZ
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS article_symbols (
      article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
      symbol TEXT NOT NULL,
      relation TEXT NOT NULL DEFAULT 'mentioned',
      PRIMARY KEY (article_id, symbol)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_article_symbols_symbol ON article_symbols (symbol);",
    # Claims + evidence
    """
    CREATE TABLE IF NOT EXISTS claims (
      id TEXT PRIMARY KEY,
      article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
      position INTEGER NOT NULL DEFAULT 0,
      text TEXT NOT NULL,
      verified BOOLEAN NOT NULL DEFAULT FALSE,
      confidence REAL NOT NULL DEFAULT 0.0
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_claims_article ON claims (article_id, position);",
    """
    CREATE TABLE IF NOT EXISTS claim_evidence (
      id BIGSERIAL PRIMARY KEY,
      claim_id TEXT NOT NULL REFERENCES claims(id) ON DELETE CASCADE,
      url TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_claim_evidence_claim ON claim_evidence (claim_id, id);",
    # Forecasts (one per article x symbol)
    """
    CREATE TABLE IF NOT EXISTS forecasts (
      id TEXT PRIMARY KEY,
      article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
      symbol TEXT NOT NULL,
      sentiment TEXT NOT NULL,
      impact_score REAL NOT NULL,
      price_target REAL NOT NULL,
      time_horizon TEXT NOT NULL,
      confidence REAL NOT NULL,
      reasoning TEXT NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      UNIQUE (article_id, symbol)
    );
    """,
    # Background tasks
    """
    CREATE TABLE IF NOT EXISTS tasks (
      id TEXT PRIMARY KEY,
      type TEXT NOT NULL,
      status TEXT NOT NULL DEFAULT 'pending',
      input JSONB NOT NULL DEFAULT '{}'::jsonb,
      result JSONB,
      progress INTEGER NOT NULL DEFAULT 0,
      message TEXT,
      error_message TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      completed_at TIMESTAMPTZ
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status, created_at DESC);",
]


async def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    async with await psycopg.AsyncConnection.connect(pg_dsn, autocommit=True) as conn:
        async with conn.cursor() as cur:
            for s in stmts:
                await cur.execute(s)
