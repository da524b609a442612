"""Explicit wiring of every pipeline handle from Settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from biaz.cache.redis_cache import RedisCache
from biaz.config import Settings
from biaz.extraction.acquire import ContentAcquirer
from biaz.extraction.managed import ManagedExtractor
from biaz.forecast.forecasts import ForecastService
from biaz.ingestion.feeds import default_sources
from biaz.llm.gateway import GenerativeGateway, build_gateway
from biaz.llm.images import ImageGenerator
from biaz.market.quotes import QuoteService
from biaz.monitor.feed_monitor import FeedMonitor
from biaz.pipeline.ingest import IngestionOrchestrator
from biaz.scoring.admission import AdmissionPolicy
from biaz.storage.postgres_repo import PostgresRepo
from biaz.storage.postgres_schema import ensure_postgres_schema
from biaz.symbols.resolver import SymbolResolver
from biaz.tasks.queue import TaskQueue
from biaz.verification.claims import ClaimVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    http: httpx.AsyncClient
    cache: RedisCache
    gateway: GenerativeGateway
    repo: PostgresRepo
    images: Optional[ImageGenerator]
    quotes: QuoteService
    acquirer: ContentAcquirer
    forecasts: ForecastService
    orchestrator: IngestionOrchestrator
    queue: TaskQueue
    monitor: FeedMonitor

    @classmethod
    def build(cls, settings: Settings) -> "Services":
        http = httpx.AsyncClient(timeout=httpx.Timeout(settings.page_timeout, connect=5.0))
        cache = RedisCache.from_url(settings.redis_url)
        gateway = build_gateway(settings)
        repo = PostgresRepo(settings.pg_dsn)
        images = ImageGenerator.from_settings(settings)
        if images is None:
            logger.warning("Image generation not configured; articles without a lead image will be rejected")
        quotes = QuoteService(http, ttl_seconds=settings.quote_cache_ttl)
        managed = (
            ManagedExtractor(http, settings.apify_api_token, settings.apify_actor)
            if settings.managed_extraction_configured
            else None
        )
        acquirer = ContentAcquirer(
            http, managed, page_timeout=settings.page_timeout, managed_timeout=settings.managed_timeout
        )
        forecasts = ForecastService(gateway, cache, repo, quotes, ttl_seconds=settings.ai_cache_ttl)
        orchestrator = IngestionOrchestrator(
            repo=repo,
            acquirer=acquirer,
            symbols=SymbolResolver(gateway),
            verifier=ClaimVerifier(gateway, cache, ttl_seconds=settings.ai_cache_ttl),
            policy=AdmissionPolicy(repo, images),
            forecasts=forecasts,
            quotes=quotes,
        )
        queue = TaskQueue(repo, orchestrator, forecasts)
        monitor = FeedMonitor(
            http,
            repo,
            orchestrator,
            acquirer,
            default_sources(settings.rss_feeds, settings.search_queries),
            redirect_timeout=settings.page_timeout,
        )
        return cls(
            settings=settings,
            http=http,
            cache=cache,
            gateway=gateway,
            repo=repo,
            images=images,
            quotes=quotes,
            acquirer=acquirer,
            forecasts=forecasts,
            orchestrator=orchestrator,
            queue=queue,
            monitor=monitor,
        )

    async def start(self) -> None:
        await ensure_postgres_schema(self.settings.pg_dsn)

    async def close(self) -> None:
        await self.queue.drain()
        await self.http.aclose()
        await self.cache.close()
