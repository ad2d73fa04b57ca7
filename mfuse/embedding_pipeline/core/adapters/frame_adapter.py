from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, FrameSet, Success
from mfuse.providers.base import MediaExtractor


class FrameAdapter(ExtractionAdapter):
    """
    Samples frames and hands them out as a ``FrameSet``.

    The returned set owns the extractor's temporary storage; whoever receives
    a successful outcome is responsible for releasing it.
    """

    modality = "frames"

    def __init__(self, extractor: MediaExtractor, fps: float = 1.0, max_frames: int = 10, enabled: bool = True):
        super().__init__(enabled)
        self.extractor = extractor
        self.fps = fps
        self.max_frames = max_frames

    async def extract(self, video_data: bytes) -> ExtractionOutcome[FrameSet]:
        if not self.enabled:
            return self._disabled()

        async def _run(timer):
            frames = await self.extractor.extract_frames(video_data, self.fps, self.max_frames)
            if not frames:
                return Failure(reason="No frames extracted", error_code="NO_FRAMES",
                               processing_time_ms=timer.elapsed_ms())

            frame_set = FrameSet(
                frames=list(frames[:self.max_frames]),
                source=type(self.extractor).__name__,
                cleanup=self.extractor.cleanup_frames,
            )
            if len(frames) > self.max_frames:
                await self.extractor.cleanup_frames(list(frames[self.max_frames:]))
            return Success(value=frame_set, processing_time_ms=timer.elapsed_ms())

        return await self._guarded(_run)
