"""Backfill illustrations for stored articles that have no image."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from biaz.llm.images import ImageGenerator

logger = logging.getLogger(__name__)


async def add_missing_images(repo: Any, images: ImageGenerator, *, limit: int = 10, pause: float = 2.0) -> int:
    articles = await repo.articles_missing_images(limit)
    logger.info(f"Found {len(articles)} articles without images")
    added = 0
    for article in articles:
        if not article.symbols:
            logger.info(f"Skipping {article.id}: no symbol")
            continue
        image_url = await images.generate(article.title, article.symbols[0])
        if not image_url:
            logger.warning(f"Failed to generate image for {article.id}")
            continue
        await repo.set_article_image(article.id, image_url)
        added += 1
        logger.info(f"Added image for {article.id}: {image_url}")
        if pause:
            await asyncio.sleep(pause)
    return added
