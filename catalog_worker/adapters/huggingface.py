"""Hugging Face inference router adapter for vision analysis."""

from catalog_worker.adapters.openai import OpenAIAdapter
from catalog_worker.config import (
    HUGGINGFACE_API_KEY,
    HUGGINGFACE_BASE_URL,
    HUGGINGFACE_VISION_MODEL,
)


class HuggingFaceAdapter(OpenAIAdapter):
    """Qwen2-VL (or another hosted VLM) through the OpenAI-compatible HF router."""

    def __init__(self, model: str | None = None):
        if not HUGGINGFACE_API_KEY:
            raise ValueError("HUGGINGFACE_API_KEY is required for the huggingface provider")
        super().__init__(
            base_url=HUGGINGFACE_BASE_URL,
            api_key=HUGGINGFACE_API_KEY,
            model=model or HUGGINGFACE_VISION_MODEL,
        )
