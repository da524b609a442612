#!/usr/bin/env python3
"""Generate illustrations for stored articles that have no image."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from biaz.config import Settings, configure_logging
from biaz.llm.images import ImageGenerator
from biaz.pipeline.backfill import add_missing_images
from biaz.storage.postgres_repo import PostgresRepo

logger = logging.getLogger("add_missing_images")


def main() -> int:
    load_dotenv()
    settings = Settings.from_env()
    images = ImageGenerator.from_settings(settings)
    if images is None:
        logger.error("DALLE_ENDPOINT, DALLE_API_KEY and DALLE_DEPLOYMENT_NAME are required")
        return 1
    limit = int(os.environ.get("BACKFILL_LIMIT", "10"))
    added = asyncio.run(add_missing_images(PostgresRepo(settings.pg_dsn), images, limit=limit))
    logger.info(f"[images] added={added}")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(main())
