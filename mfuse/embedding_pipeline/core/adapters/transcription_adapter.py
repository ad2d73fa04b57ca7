from typing import Optional

from mfuse.embedding_pipeline.core.adapters.base import ExtractionAdapter
from mfuse.embedding_pipeline.core.outcomes import AudioTrack, ExtractionOutcome, Failure, Success, Transcript
from mfuse.providers.base import TranscriptionProvider

# Whisper does not report a usable confidence for the whole transcript
DEFAULT_TRANSCRIPT_CONFIDENCE = 0.85


class TranscriptionAdapter(ExtractionAdapter):
    modality = "transcription"

    def __init__(self, provider: Optional[TranscriptionProvider], language: Optional[str] = None, enabled: bool = True):
        super().__init__(enabled and provider is not None)
        self.provider = provider
        self.language = language

    async def transcribe(self, audio: AudioTrack) -> ExtractionOutcome[Transcript]:
        if not self.enabled:
            return self._disabled()

        async def _run(timer):
            result = await self.provider.transcribe(audio.data, language=self.language)
            text = (result.get("text") or "").strip()
            if not text:
                return Failure(reason="Transcription is empty", error_code="EMPTY_TRANSCRIPT",
                               processing_time_ms=timer.elapsed_ms())

            confidence = float(result.get("confidence", DEFAULT_TRANSCRIPT_CONFIDENCE))
            transcript = Transcript(text=text, language=result.get("language") or self.language, confidence=confidence)
            return Success(value=transcript, confidence=confidence, processing_time_ms=timer.elapsed_ms())

        return await self._guarded(_run)
