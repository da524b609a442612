"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List

PROVIDERS = ("azure", "gemini", "openai")

DEFAULT_PG_DSN = "dbname=biaz user=biaz password=biazpass host=localhost port=5432"


def _split_list(raw: str, sep: str = ",") -> List[str]:
    return [p.strip() for p in (raw or "").split(sep) if p.strip()]


@dataclass
class Settings:
    """Pipeline configuration with validation"""

    pg_dsn: str = DEFAULT_PG_DSN
    redis_url: str = "redis://localhost:6379/0"

    # Generative text backends
    ai_provider: str = "azure"
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_api_version: str = "2024-06-01"
    azure_deployment_name: str = ""
    google_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    llm_timeout: float = 60.0

    # Image generation
    dalle_endpoint: str = ""
    dalle_api_key: str = ""
    dalle_deployment_name: str = ""
    dalle_api_version: str = "2024-02-01"
    images_dir: str = "public/images"
    public_base_url: str = "http://localhost:23000"
    image_rate_limit: int = 50  # requests per minute

    # Managed extraction (Apify)
    apify_api_token: str = ""
    apify_actor: str = "apify~website-content-crawler"

    # Timeouts (seconds)
    page_timeout: float = 10.0
    managed_timeout: float = 60.0

    # Cache TTLs (seconds)
    ai_cache_ttl: int = 24 * 3600
    quote_cache_ttl: int = 15 * 60

    # Feed monitor
    monitor_interval_minutes: int = 30
    rss_feeds: List[str] = field(default_factory=list)
    search_queries: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load and validate configuration from environment variables"""
        settings = cls(
            pg_dsn=os.getenv("PG_DSN", os.getenv("DATABASE_URL", DEFAULT_PG_DSN)),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            ai_provider=os.getenv("AI_PROVIDER", "azure").strip().lower(),
            azure_openai_api_key=os.getenv("AZURE_OPENAI_API_KEY", ""),
            azure_openai_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
            azure_api_version=os.getenv("AZURE_API_VERSION", "2024-06-01"),
            azure_deployment_name=os.getenv("AZURE_DEPLOYMENT_NAME", ""),
            google_api_key=os.getenv("GOOGLE_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            gemini_base_url=os.getenv(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
            ),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "60")),
            dalle_endpoint=os.getenv("DALLE_ENDPOINT", ""),
            dalle_api_key=os.getenv("DALLE_API_KEY", ""),
            dalle_deployment_name=os.getenv("DALLE_DEPLOYMENT_NAME", ""),
            dalle_api_version=os.getenv("DALLE_API_VERSION", "2024-02-01"),
            images_dir=os.getenv("IMAGES_DIR", "public/images"),
            public_base_url=os.getenv("API_URL", "http://localhost:23000").rstrip("/"),
            image_rate_limit=int(os.getenv("IMAGE_RATE_LIMIT", "50")),
            apify_api_token=os.getenv("APIFY_API_TOKEN", ""),
            apify_actor=os.getenv("APIFY_ACTOR", "apify~website-content-crawler"),
            page_timeout=float(os.getenv("PAGE_TIMEOUT", "10")),
            managed_timeout=float(os.getenv("MANAGED_TIMEOUT", "60")),
            ai_cache_ttl=int(os.getenv("AI_CACHE_TTL", str(24 * 3600))),
            quote_cache_ttl=int(os.getenv("QUOTE_CACHE_TTL", str(15 * 60))),
            monitor_interval_minutes=int(os.getenv("MONITOR_INTERVAL_MINUTES", "30")),
            rss_feeds=_split_list(os.getenv("RSS_FEEDS", "")),
            search_queries=_split_list(os.getenv("SEARCH_QUERIES", ""), sep=";"),
        )
        settings._validate()
        return settings

    @property
    def azure_configured(self) -> bool:
        return bool(self.azure_openai_api_key and self.azure_openai_endpoint and self.azure_deployment_name)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.google_api_key and self.gemini_model)

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def images_configured(self) -> bool:
        return bool(self.dalle_endpoint and self.dalle_api_key and self.dalle_deployment_name)

    @property
    def managed_extraction_configured(self) -> bool:
        return bool(self.apify_api_token)

    def _validate(self) -> None:
        """Validate configuration values"""
        errors = []
        if not self.pg_dsn:
            errors.append("PG_DSN is required")
        if self.ai_provider not in PROVIDERS:
            errors.append(f"AI_PROVIDER must be one of {', '.join(PROVIDERS)} (got {self.ai_provider!r})")
        if not (self.azure_configured or self.gemini_configured or self.openai_configured):
            errors.append("At least one generative backend must be configured (Azure, Gemini or OpenAI)")
        if self.page_timeout <= 0 or self.managed_timeout <= 0:
            errors.append("Fetch timeouts must be positive")
        if errors:
            raise ValueError("Configuration errors: " + "; ".join(errors))


def configure_logging(log_file: str = "") -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = log_file or os.getenv("LOG_FILE", "")
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )
