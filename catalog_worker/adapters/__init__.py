"""Vision adapter factory."""

from catalog_worker.adapters.base import VisionAdapter
from catalog_worker.config import VISION_PROVIDER


def get_adapter() -> VisionAdapter:
    """Return the adapter for the configured VISION_PROVIDER."""
    if VISION_PROVIDER == "openai":
        from catalog_worker.adapters.openai import OpenAIAdapter

        return OpenAIAdapter()
    if VISION_PROVIDER == "huggingface":
        from catalog_worker.adapters.huggingface import HuggingFaceAdapter

        return HuggingFaceAdapter()

    from catalog_worker.adapters.ollama import OllamaAdapter

    return OllamaAdapter()
