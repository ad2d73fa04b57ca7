import math
from typing import Iterable, Optional

from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, Success, TextEmbedding
from mfuse.providers.base import EmbeddingProvider
from mfuse.utils.normalization import normalize_l2

CHARS_PER_TOKEN = 4


def build_text(description: str, transcript: Optional[str], hashtags: Iterable[str]) -> str:
    """Description, transcript and ``#``-prefixed hashtags joined by single spaces."""
    tags = [f"#{tag.lstrip('#')}" for tag in hashtags if tag and tag.strip("# ")]
    parts = [(description or "").strip(), (transcript or "").strip(), " ".join(tags)]
    return " ".join(part for part in parts if part)


def truncate_at_word(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    boundary = cut.rfind(" ")
    return cut[:boundary] if boundary > 0 else cut


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TextEmbeddingAdapter(ExtractionAdapter):
    modality = "text"

    build_text = staticmethod(build_text)

    def __init__(self, provider: Optional[EmbeddingProvider], dimension: int = 384, max_length: int = 512, enabled: bool = True):
        super().__init__(enabled and provider is not None)
        self.provider = provider
        self.dimension = dimension
        self.max_length = max_length

    async def embed(self, text: str) -> ExtractionOutcome[TextEmbedding]:
        if not self.enabled:
            return self._disabled()
        text = truncate_at_word((text or "").strip(), self.max_length)
        if not text:
            return Failure(reason="No text to embed", error_code="EMPTY_TEXT")

        async def _run(timer):
            vector = await self.provider.embedding(text)
            if len(vector) != self.dimension:
                return Failure(
                    reason=f"Text embedding has {len(vector)} dims, expected {self.dimension}",
                    error_code="DIMENSION_MISMATCH",
                    processing_time_ms=timer.elapsed_ms(),
                )

            embedding = TextEmbedding(
                vector=normalize_l2(vector),
                token_count=estimate_tokens(text),
                text_length=len(text),
            )
            return Success(value=embedding, dimension=self.dimension, processing_time_ms=timer.elapsed_ms())

        return await self._guarded(_run)
