"""Admission policy: decide whether an acquired article may be stored."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from biaz.errors import IngestionRejected, RejectionReason
from biaz.llm.images import ImageGenerator

logger = logging.getLogger(__name__)

AD_KEYWORDS = [
    "subscribe to",
    "sign up",
    "get access",
    "become a member",
    "join now",
    "premium content",
]
AD_SCAN_CHARS = 500


def is_advertisement(title: str, text: str) -> bool:
    lower_title = (title or "").lower()
    head = (text or "")[:AD_SCAN_CHARS].lower()
    return any(k in lower_title or k in head for k in AD_KEYWORDS)


def check_content(symbols: Sequence[str], title: str, text: str, *, manual: bool = False) -> None:
    """Checks that run right after symbol resolution."""
    if not symbols and not manual:
        raise IngestionRejected(RejectionReason.NO_SYMBOLS)
    if is_advertisement(title, text):
        raise IngestionRejected(RejectionReason.ADVERTISEMENT)


class AdmissionPolicy:
    def __init__(self, repo: Any, images: Optional[ImageGenerator] = None):
        self._repo = repo
        self._images = images

    async def check_title(self, title: str) -> None:
        if await self._repo.title_exists(title):
            raise IngestionRejected(RejectionReason.DUPLICATE_TITLE, title[:120])

    async def select_image(
        self, lead_image: Optional[str], title: str, symbols: Sequence[str], *, manual: bool = False
    ) -> Optional[str]:
        """Lead image if unused, else a generated illustration; None only for manual submissions."""
        if lead_image:
            if not await self._repo.image_in_use(lead_image):
                return lead_image
            logger.info(f"Lead image already used by another article: {lead_image}")

        if symbols and self._images is not None:
            logger.info(f"Generating image for {symbols[0]}")
            generated = await self._images.generate(title, symbols[0])
            if generated and not await self._repo.image_in_use(generated):
                return generated

        if manual:
            return None
        raise IngestionRejected(RejectionReason.NO_IMAGE)
