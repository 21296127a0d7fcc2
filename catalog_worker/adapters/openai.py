"""OpenAI adapter for vision analysis."""

import logging
from typing import Any

from catalog_worker.adapters.base import VisionAdapter
from catalog_worker.config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    VISION_MAX_OUTPUT_TOKENS,
    VISION_MODEL,
)

logger = logging.getLogger(__name__)

_OPENAI_HOST = "api.openai.com"


class OpenAIAdapter(VisionAdapter):
    """OpenAI chat-completions vision adapter.

    Also serves any OpenAI-compatible endpoint (Ollama, the Hugging Face router).
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
    ):
        from openai import AsyncOpenAI

        base_url = base_url or OPENAI_BASE_URL
        api_key = api_key or OPENAI_API_KEY
        if _OPENAI_HOST in base_url and not api_key:
            raise ValueError(f"OPENAI_API_KEY is required when using {base_url}")

        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or "not-required",
        )
        self.model = model or VISION_MODEL
        self.max_tokens = VISION_MAX_OUTPUT_TOKENS

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """Send the conversation and return the reply text.

        Errors propagate; the analyzer turns them into an empty analysis.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def is_available(self) -> bool:
        """Check if the endpoint is reachable with the configured model."""
        try:
            await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "test"}],
                max_tokens=5,
            )
            return True
        except Exception as e:
            logger.warning(f"Vision model availability check failed: {e}")
            return False
