"""OpenAI-compatible chat client used for summarization (api_key and base_url from config)."""
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from voicebrief.core.config import Settings
from voicebrief.core.errors import ProviderError

logger = logging.getLogger(__name__)


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """Return an AsyncOpenAI client configured from settings. OPENAI_BASE_URL points it at any OpenAI-compatible provider (e.g. Groq).
    Why available: Built once in the app lifespan and passed to OpenAISummaryClient, so there is no process-wide client singleton."""
    kwargs = {"api_key": settings.openai_api_key}
    if settings.openai_base_url:
        kwargs["base_url"] = settings.openai_base_url
    return AsyncOpenAI(**kwargs)


class OpenAISummaryClient:
    """SummaryClient backed by chat completions. Translates SDK errors into ProviderError so the summarizer's retry policy sees one error type."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAISummaryClient":
        return cls(
            build_openai_client(settings),
            model=settings.chat_model,
            temperature=settings.summary_temperature,
            max_tokens=settings.summary_max_tokens,
        )

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"Summarization provider error: {e}") from e

        u = getattr(resp, "usage", None)
        if u is not None:
            logger.debug(
                "summary_completion_usage",
                extra={
                    "prompt_tokens": getattr(u, "prompt_tokens", 0) or 0,
                    "completion_tokens": getattr(u, "completion_tokens", 0) or 0,
                },
            )
        if not resp.choices:
            raise ProviderError("Summarization provider returned no choices")
        return resp.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()
