"""Best-effort illustration generation for articles without a usable lead image."""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import time
from typing import Any, Awaitable, Callable, List, Optional

import openai

from biaz.config import Settings
from biaz.llm import prompts

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter for API calls"""

    def __init__(
        self,
        max_calls: int,
        time_window: float = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls: List[float] = []
        self.lock = asyncio.Lock()
        self._clock = clock
        self._sleep = sleep

    async def wait_if_needed(self) -> None:
        """Wait if rate limit would be exceeded"""
        async with self.lock:
            now = self._clock()
            self.calls = [t for t in self.calls if now - t < self.time_window]

            if len(self.calls) >= self.max_calls:
                sleep_time = self.time_window - (now - self.calls[0])
                if sleep_time > 0:
                    logger.info(f"Rate limit reached, waiting {sleep_time:.1f} seconds")
                    await self._sleep(sleep_time)
                    now = self._clock()
                    self.calls = [t for t in self.calls if now - t < self.time_window]

            self.calls.append(now)


class ImageGenerator:
    def __init__(self, client: Any, deployment: str, images_dir: str, public_base_url: str, limiter: RateLimiter):
        self._client = client
        self._deployment = deployment
        self.images_dir = images_dir
        self.public_base_url = public_base_url.rstrip("/")
        self._limiter = limiter

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["ImageGenerator"]:
        if not settings.images_configured:
            return None
        client = openai.AsyncAzureOpenAI(
            api_key=settings.dalle_api_key,
            azure_endpoint=settings.dalle_endpoint,
            api_version=settings.dalle_api_version,
            timeout=settings.llm_timeout,
        )
        return cls(
            client,
            settings.dalle_deployment_name,
            settings.images_dir,
            settings.public_base_url,
            RateLimiter(settings.image_rate_limit, 60),
        )

    async def generate(self, title: str, symbol: str) -> Optional[str]:
        """Generate an illustration for `symbol`; returns its public URL or None."""
        await self._limiter.wait_if_needed()
        try:
            response = await self._client.images.generate(
                model=self._deployment,
                prompt=prompts.image_prompt(symbol),
                size="1024x1024",
                quality="standard",
                n=1,
                response_format="b64_json",
            )
        except openai.RateLimitError:
            logger.warning(f"Image generation rate limited for {symbol}")
            return None
        except Exception as e:
            logger.error(f"Image generation failed for {symbol} ({title[:60]}): {e}")
            return None

        b64_data = response.data[0].b64_json if response.data else None
        if not b64_data:
            logger.warning(f"Image generation returned no payload for {symbol}")
            return None

        filename = f"{symbol}-{int(time.time() * 1000)}.jpg"
        try:
            await asyncio.to_thread(self._write, filename, base64.b64decode(b64_data))
        except (OSError, ValueError) as e:
            logger.error(f"Could not store generated image {filename}: {e}")
            return None
        return f"{self.public_base_url}/images/{filename}"

    def _write(self, filename: str, payload: bytes) -> None:
        os.makedirs(self.images_dir, exist_ok=True)
        with open(os.path.join(self.images_dir, filename), "wb") as f:
            f.write(payload)
