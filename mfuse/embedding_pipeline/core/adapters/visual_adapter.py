import io
from typing import Optional

from PIL import Image
from loguru import logger

from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, Frame, FrameSet, Success, VisualEmbedding
from mfuse.providers.base import ImageEmbeddingProvider
from mfuse.utils.error_handler import ErrorHandler
from mfuse.utils.normalization import average_vectors, normalize_l2


class VisualEmbeddingAdapter(ExtractionAdapter):
    """Mean-pools per-frame image embeddings into one unit vector."""

    modality = "visual"

    def __init__(self, provider: Optional[ImageEmbeddingProvider], dimension: int = 512, enabled: bool = True):
        super().__init__(enabled and provider is not None)
        self.provider = provider
        self.dimension = dimension

    @staticmethod
    def _open(frame: Frame) -> Image.Image:
        if frame.data:
            return Image.open(io.BytesIO(frame.data))
        return Image.open(frame.path)

    async def embed(self, frame_set: FrameSet) -> ExtractionOutcome[VisualEmbedding]:
        if not self.enabled:
            return self._disabled()

        async def _run(timer):
            vectors = []
            for frame in frame_set.frames:
                try:
                    with self._open(frame) as image:
                        vector = await self.provider.image_embedding(image.convert("RGB"))
                except Exception as e:
                    logger.warning(f"Skipping frame at {frame.timestamp:.2f}s: {ErrorHandler.describe(e)}")
                    continue
                if len(vector) != self.dimension:
                    logger.warning(f"Skipping frame at {frame.timestamp:.2f}s: got {len(vector)} dims, expected {self.dimension}")
                    continue
                vectors.append(vector)

            if not vectors:
                return Failure(reason="No frame could be embedded", error_code="NO_FRAME_EMBEDDINGS",
                               processing_time_ms=timer.elapsed_ms())

            pooled = normalize_l2(average_vectors(vectors))
            confidence = len(vectors) / max(len(frame_set.frames), 1)
            return Success(
                value=VisualEmbedding(vector=pooled, frames_processed=len(vectors)),
                dimension=len(pooled),
                confidence=confidence,
                processing_time_ms=timer.elapsed_ms(),
            )

        return await self._guarded(_run)
