"""Abstract base for vision model adapters."""

from abc import ABC, abstractmethod
from typing import Any


class VisionAdapter(ABC):
    """Sends a multimodal chat conversation to a vision-language model."""

    @abstractmethod
    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """Return the model's free-text reply to ``messages``."""
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the model endpoint answers."""
        ...
