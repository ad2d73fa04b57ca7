from typing import List

from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, Success
from mfuse.providers.base import LegacyEmbeddingProvider
from mfuse.utils.normalization import normalize_l2


class LegacyEmbeddingAdapter(ExtractionAdapter):
    """Single-model vector over description and hashtags, used when fusion has nothing to fuse."""

    modality = "legacy"

    def __init__(self, provider: LegacyEmbeddingProvider):
        super().__init__(enabled=True)
        self.provider = provider

    @property
    def dimension(self) -> int:
        return self.provider.dimension

    @property
    def model_tag(self) -> str:
        return self.provider.model_tag

    async def embed(self, description: str, hashtags: List[str]) -> ExtractionOutcome[List[float]]:
        async def _run(timer):
            vector = await self.provider.legacy_embedding(description or "", list(hashtags or []))
            if len(vector) != self.dimension:
                return Failure(
                    reason=f"Legacy embedding has {len(vector)} dims, expected {self.dimension}",
                    error_code="DIMENSION_MISMATCH",
                    processing_time_ms=timer.elapsed_ms(),
                )
            return Success(value=normalize_l2(vector), dimension=self.dimension,
                           processing_time_ms=timer.elapsed_ms())

        return await self._guarded(_run)
