"""Generative text gateway with rate-limit retry and backend failover.

All generative calls in the pipeline go through `GenerativeGateway.complete`.
Backends speak the OpenAI chat-completions protocol (Azure OpenAI, Gemini's
OpenAI-compatible endpoint, plain OpenAI).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import openai
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from biaz.config import Settings
from biaz.errors import GenerationError

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class BackendRateLimited(Exception):
    """A backend answered with a rate-limit response."""
    pass


class ChatBackend:
    name: str = "base"

    async def complete(self, messages: List[Message], temperature: float) -> str:
        raise NotImplementedError


class OpenAIChatBackend(ChatBackend):
    """Chat backend over any OpenAI-compatible async client."""

    def __init__(self, name: str, client: Any, model: str):
        self.name = name
        self._client = client
        self._model = model

    async def complete(self, messages: List[Message], temperature: float) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            raise BackendRateLimited(str(e)) from e
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError(f"{self.name} returned an empty response")
        return content


class GenerativeGateway:
    """Primary backend with retry on rate limits, then a single secondary try."""

    def __init__(
        self,
        primary: ChatBackend,
        secondary: Optional[ChatBackend] = None,
        *,
        max_attempts: int = 4,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.primary = primary
        self.secondary = secondary
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        # waits of 1s, 2s, 4s between the four attempts
        return AsyncRetrying(
            retry=retry_if_exception_type(BackendRateLimited),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.warning(
            f"Rate limited (attempt {retry_state.attempt_number}), "
            f"retrying in {retry_state.next_action.sleep:.0f}s"
        )

    async def _with_retry(self, backend: ChatBackend, messages: List[Message], temperature: float) -> str:
        async for attempt in self._retrying():
            with attempt:
                text = await backend.complete(messages, temperature)
        return text

    async def complete(self, messages: List[Message], temperature: float = 0.3) -> str:
        try:
            return await self._with_retry(self.primary, messages, temperature)
        except Exception as e:
            logger.warning(f"Primary backend {self.primary.name} failed: {e}")
            primary_error = e

        if self.secondary is None:
            raise GenerationError(f"{self.primary.name} failed: {primary_error}") from primary_error

        try:
            text = await self.secondary.complete(messages, temperature)
        except Exception as e:
            logger.error(f"Secondary backend {self.secondary.name} failed: {e}")
            raise GenerationError(
                f"{self.primary.name} failed: {primary_error}; {self.secondary.name} failed: {e}"
            ) from e
        logger.info(f"Served by secondary backend {self.secondary.name}")
        return text


def _build_backends(settings: Settings) -> Dict[str, ChatBackend]:
    backends: Dict[str, ChatBackend] = {}
    if settings.azure_configured:
        client = openai.AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_api_version,
            timeout=settings.llm_timeout,
            max_retries=0,
        )
        backends["azure"] = OpenAIChatBackend("azure", client, settings.azure_deployment_name)
    if settings.gemini_configured:
        client = openai.AsyncOpenAI(
            api_key=settings.google_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.llm_timeout,
            max_retries=0,
        )
        backends["gemini"] = OpenAIChatBackend("gemini", client, settings.gemini_model)
    if settings.openai_configured:
        client = openai.AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout,
            max_retries=0,
        )
        backends["openai"] = OpenAIChatBackend("openai", client, settings.openai_model)
    return backends


def build_gateway(settings: Settings) -> GenerativeGateway:
    """Primary follows AI_PROVIDER; the first other configured backend is the secondary."""
    backends = _build_backends(settings)
    if not backends:
        raise GenerationError("No generative backend configured")
    order = [settings.ai_provider] + [n for n in ("azure", "gemini", "openai") if n != settings.ai_provider]
    available = [n for n in order if n in backends]
    if available[0] != settings.ai_provider:
        logger.warning(f"AI_PROVIDER={settings.ai_provider} is not configured, using {available[0]}")
    primary = backends[available[0]]
    secondary = backends[available[1]] if len(available) > 1 else None
    logger.info(f"Generative gateway: primary={primary.name} secondary={secondary.name if secondary else None}")
    return GenerativeGateway(primary, secondary)
