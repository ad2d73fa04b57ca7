from abc import ABC, abstractmethod
from typing import List


class LegacyEmbeddingProvider(ABC):
    """Single-model embedding over description and hashtags, used as the fusion fallback."""

    dimension: int
    model_tag: str

    @abstractmethod
    async def legacy_embedding(self, text: str, tags: List[str], **kwargs) -> List[float]:
        """Return a vector of exactly ``dimension`` floats."""
        pass
