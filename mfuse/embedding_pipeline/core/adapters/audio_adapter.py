import io
import wave

from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import AudioTrack, ExtractionOutcome, Failure, Success
from mfuse.providers.base import MediaExtractor


def wav_duration(data: bytes) -> float:
    """Duration in seconds of a wav payload, 0.0 if the header cannot be read."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            rate = wav.getframerate()
            return wav.getnframes() / rate if rate else 0.0
    except (wave.Error, EOFError):
        return 0.0


class AudioAdapter(ExtractionAdapter):
    modality = "audio"

    def __init__(self, extractor: MediaExtractor, sample_rate: int = 16000, channels: int = 1, enabled: bool = True):
        super().__init__(enabled)
        self.extractor = extractor
        self.sample_rate = sample_rate
        self.channels = channels

    async def extract(self, video_data: bytes, has_audio: bool = True, duration_hint: float = 0.0) -> ExtractionOutcome[AudioTrack]:
        if not self.enabled:
            return self._disabled()
        if not has_audio:
            return Failure(reason="Video has no audio track", error_code="NO_AUDIO")

        async def _run(timer):
            data = await self.extractor.extract_audio(video_data, self.sample_rate, self.channels)
            if not data:
                return Failure(reason="Extractor returned no audio", error_code="NO_AUDIO",
                               processing_time_ms=timer.elapsed_ms())

            duration = wav_duration(data) or duration_hint
            track = AudioTrack(data=data, duration=duration, sample_rate=self.sample_rate, channels=self.channels)
            return Success(value=track, processing_time_ms=timer.elapsed_ms())

        return await self._guarded(_run)
