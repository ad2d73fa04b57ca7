"""
Multi-modal content embedding generation.

One call to ``ContentEmbeddingGenerator.generate`` runs the extraction
fan-out for a single video:

    audio ──> transcription ──┐
                              ├──> text embedding ──┐
    description + hashtags ───┘                     ├──> fuse | fallback
    frames ──> visual embedding ────────────────────┘

Every arrow is bounded by its own timeout. A branch that times out is
recorded as a ``Failure`` with ``error_code="TIMEOUT"`` and left running in
the background; the run does not wait for it. Frames are released before
the run reaches ``DONE``, and frames delivered after their timeout are
released as soon as they arrive.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from mfuse.config.settings import EmbeddingModelsConfig
from mfuse.embedding_pipeline.core.adapters import (
    AudioAdapter,
    FrameAdapter,
    LegacyEmbeddingAdapter,
    TextEmbeddingAdapter,
    TranscriptionAdapter,
    VisualEmbeddingAdapter,
    build_text,
)
from mfuse.embedding_pipeline.core.models import (
    CombinedEmbedding,
    CombinedFrom,
    ContentEmbeddingRequest,
    EmbeddingComponents,
    EmbeddingMetadata,
    TextComponentMetadata,
    TranscriptionComponentMetadata,
    VisualComponentMetadata,
)
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, FrameSet, Success
from mfuse.exceptions import ExtractionTimeoutError, MFuseException
from mfuse.providers.base import (
    EmbeddingProvider,
    ImageEmbeddingProvider,
    LegacyEmbeddingProvider,
    MediaExtractor,
    TranscriptionProvider,
)
from mfuse.providers.factory import ProviderFactory
from mfuse.utils.error_handler import ErrorHandler
from mfuse.utils.execution_timer import ExecutionTimer
from mfuse.utils.normalization import combine_vectors, normalize_l2, normalize_weights


class FusionState(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    FUSING = "fusing"
    FALLBACK = "fallback"
    DONE = "done"


_ALLOWED_TRANSITIONS = {
    FusionState.PENDING: {FusionState.EXTRACTING, FusionState.DONE},
    FusionState.EXTRACTING: {FusionState.FUSING, FusionState.FALLBACK, FusionState.DONE},
    FusionState.FUSING: {FusionState.DONE},
    FusionState.FALLBACK: {FusionState.DONE},
    FusionState.DONE: set(),
}


@dataclass
class FusionRun:
    """Bookkeeping for one ``generate`` call."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: FusionState = FusionState.PENDING
    history: List[FusionState] = field(default_factory=lambda: [FusionState.PENDING])
    outcomes: Dict[str, ExtractionOutcome[Any]] = field(default_factory=dict)
    frame_sets: List[FrameSet] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def transition(self, new_state: FusionState):
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Invalid fusion transition {self.state.value} -> {new_state.value}")
        logger.info(f"Fusion run {self.run_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def record(self, modality: str, outcome: ExtractionOutcome[Any]) -> ExtractionOutcome[Any]:
        self.outcomes[modality] = outcome
        if outcome.is_success:
            logger.debug(f"Fusion run {self.run_id}: {modality} ok in {outcome.processing_time_ms:.0f}ms")
        else:
            logger.warning(f"Fusion run {self.run_id}: {modality} failed [{outcome.error_code}] {outcome.reason}")
        return outcome

    async def release_frames(self):
        for frame_set in self.frame_sets:
            await frame_set.release()


class ContentEmbeddingGenerator:
    """
    Produces a ``CombinedEmbedding`` for a moment video.

    Providers are built from ``config`` through ``ProviderFactory`` unless
    passed in explicitly. A modality whose provider cannot be created is
    disabled with a warning; the legacy provider is required.
    """

    def __init__(
        self,
        config: Optional[EmbeddingModelsConfig] = None,
        media_extractor: Optional[MediaExtractor] = None,
        text_provider: Optional[EmbeddingProvider] = None,
        image_provider: Optional[ImageEmbeddingProvider] = None,
        transcription_provider: Optional[TranscriptionProvider] = None,
        legacy_provider: Optional[LegacyEmbeddingProvider] = None,
    ):
        self.config = config or EmbeddingModelsConfig()
        self.weights = self.config.weights
        self._background: Set[asyncio.Task] = set()

        media = self.config.media
        clip = self.config.clip
        whisper = self.config.whisper
        text = self.config.text_embedding

        if media_extractor is None and (clip.enabled or whisper.enabled):
            media_extractor = ProviderFactory.create_media_extractor(media)
        if image_provider is None and clip.enabled:
            image_provider = self._optional_provider("visual", ProviderFactory.create_image_embedding_provider, clip)
        if transcription_provider is None and whisper.enabled:
            transcription_provider = self._optional_provider(
                "transcription", ProviderFactory.create_transcription_provider, whisper
            )
        if text_provider is None and text.enabled:
            text_provider = self._optional_provider("text", ProviderFactory.create_embedding_provider, text)
        if legacy_provider is None:
            legacy_provider = ProviderFactory.create_legacy_embedding_provider(self.config.legacy)

        self.transcription = TranscriptionAdapter(transcription_provider, language=whisper.language,
                                                  enabled=whisper.enabled)
        self.visual = VisualEmbeddingAdapter(image_provider, dimension=clip.dimension, enabled=clip.enabled)
        self.text = TextEmbeddingAdapter(text_provider, dimension=text.dimension, max_length=text.max_length,
                                         enabled=text.enabled)
        # Audio and frames are only worth extracting for a consumer that is switched on
        self.audio = AudioAdapter(media_extractor, sample_rate=whisper.sample_rate, channels=whisper.audio_channels,
                                  enabled=self.transcription.enabled and media_extractor is not None)
        self.frames = FrameAdapter(media_extractor, fps=clip.frames_per_second, max_frames=clip.max_frames,
                                   enabled=self.visual.enabled and media_extractor is not None)
        self.legacy = LegacyEmbeddingAdapter(legacy_provider)

        logger.info(
            "ContentEmbeddingGenerator ready: "
            f"text={self.text.enabled} visual={self.visual.enabled} transcription={self.transcription.enabled} "
            f"legacy_dim={self.legacy.dimension}"
        )

    @staticmethod
    def _optional_provider(modality: str, create, section):
        try:
            return create(section)
        except MFuseException as e:
            logger.warning(f"{modality} provider unavailable, modality disabled: {ErrorHandler.describe(e)}")
            return None

    # ------------------------------------------------------------------
    # Task helpers
    # ------------------------------------------------------------------
    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _bounded(self, task: asyncio.Task, timeout: float, modality: str) -> ExtractionOutcome[Any]:
        """Wait for ``task`` at most ``timeout`` seconds without cancelling it."""
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            if task.cancelled():
                return Failure(reason=f"{modality} task was cancelled", error_code="CANCELLED")
            if task.exception() is not None:
                return Failure.from_exception(task.exception())
            return task.result()
        error = ExtractionTimeoutError(modality, timeout)
        return Failure(reason=str(error), error_code=error.error_code, processing_time_ms=timeout * 1000.0)

    def _release_when_done(self, task: asyncio.Task):
        """Release frames from a frame task the run stopped waiting for."""
        def _on_done(finished: asyncio.Task):
            if finished.cancelled() or finished.exception() is not None:
                return
            outcome = finished.result()
            if outcome.is_success:
                logger.info(f"Releasing {len(outcome.value)} frames that arrived after the timeout")
                self._spawn(outcome.value.release())

        task.add_done_callback(_on_done)

    async def wait_for_background(self, timeout: Optional[float] = None):
        """Wait for abandoned branch tasks (used on shutdown)."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._background:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(set(self._background), timeout=remaining)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------
    async def _transcript_branch(self, request: ContentEmbeddingRequest, run: FusionRun) -> ExtractionOutcome[Any]:
        audio_task = self._spawn(self.audio.extract(
            request.video_data,
            has_audio=request.video_metadata.has_audio,
            duration_hint=request.video_metadata.duration,
        ))
        audio = run.record("audio", await self._bounded(audio_task, self.config.media.audio_timeout, "audio"))
        if not audio.is_success:
            return run.record("transcription", Failure(reason=f"Audio unavailable: {audio.reason}",
                                                       error_code="DEPENDENCY_FAILED"))

        transcript_task = self._spawn(self.transcription.transcribe(audio.value))
        return run.record("transcription", await self._bounded(
            transcript_task, self.config.whisper.timeout, "transcription"
        ))

    async def _visual_branch(self, request: ContentEmbeddingRequest, run: FusionRun) -> ExtractionOutcome[Any]:
        frames_task = self._spawn(self.frames.extract(request.video_data))
        frames = run.record("frames", await self._bounded(frames_task, self.config.media.frames_timeout, "frames"))
        if not frames.is_success:
            if not frames_task.done():
                self._release_when_done(frames_task)
            return run.record("visual", Failure(reason=f"Frames unavailable: {frames.reason}",
                                                error_code="DEPENDENCY_FAILED"))

        run.frame_sets.append(frames.value)
        visual_task = self._spawn(self.visual.embed(frames.value))
        return run.record("visual", await self._bounded(visual_task, self.config.clip.timeout, "visual"))

    async def _text_branch(self, request: ContentEmbeddingRequest, run: FusionRun,
                           transcript_task: asyncio.Task) -> ExtractionOutcome[Any]:
        # Only waits for the transcript branch to settle; a failed transcript is simply left out
        await asyncio.wait({transcript_task})
        transcript = transcript_task.result() if transcript_task.exception() is None else None
        transcript_text = transcript.value.text if transcript is not None and transcript.is_success else None

        text = build_text(request.description, transcript_text, request.hashtags)
        text_task = self._spawn(self.text.embed(text))
        return run.record("text", await self._bounded(text_task, self.config.text_embedding.timeout, "text"))

    async def _extract(self, request: ContentEmbeddingRequest, run: FusionRun):
        transcript_task = self._spawn(self._transcript_branch(request, run))
        visual_task = self._spawn(self._visual_branch(request, run))
        text_task = self._spawn(self._text_branch(request, run, transcript_task))

        results = await asyncio.gather(transcript_task, visual_task, text_task, return_exceptions=True)
        transcript, visual, text = (
            Failure.from_exception(r) if isinstance(r, BaseException) else r for r in results
        )
        return text, visual, transcript

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------
    def _fuse(self, text: ExtractionOutcome[Any], visual: ExtractionOutcome[Any],
              transcript: ExtractionOutcome[Any]) -> CombinedEmbedding:
        names, vectors, weights = [], [], []
        if text.is_success:
            names.append("text")
            vectors.append(text.value.vector)
            weights.append(self.weights.text)
        if visual.is_success:
            names.append("visual")
            vectors.append(visual.value.vector)
            weights.append(self.weights.visual)

        vector = normalize_l2(combine_vectors(vectors, weights))
        effective = dict(zip(names, normalize_weights(weights)))

        components = EmbeddingComponents()
        if text.is_success:
            components.text = TextComponentMetadata(
                confidence=text.confidence,
                processing_time_ms=text.processing_time_ms,
                dimension=len(text.value.vector),
                weight=effective["text"],
                token_count=text.value.token_count,
                text_length=text.value.text_length,
            )
        if visual.is_success:
            components.visual = VisualComponentMetadata(
                confidence=visual.confidence,
                processing_time_ms=visual.processing_time_ms,
                dimension=len(visual.value.vector),
                weight=effective["visual"],
                frames_processed=visual.value.frames_processed,
            )
        if transcript.is_success:
            components.transcription = TranscriptionComponentMetadata(
                confidence=transcript.confidence,
                processing_time_ms=transcript.processing_time_ms,
                language=transcript.value.language,
                text_length=len(transcript.value.text),
            )

        return CombinedEmbedding(
            vector=vector,
            dimension=len(vector),
            metadata=EmbeddingMetadata(
                model=self.config.model_tag,
                fallback=False,
                components=components,
                combined_from=CombinedFrom(components=len(names), weights=effective),
            ),
        )

    async def _fallback(self, request: ContentEmbeddingRequest) -> ExtractionOutcome[CombinedEmbedding]:
        task = self._spawn(self.legacy.embed(request.description, list(request.hashtags)))
        outcome = await self._bounded(task, self.config.legacy.timeout, "legacy")
        if not outcome.is_success:
            return Failure(reason=f"Legacy fallback failed: {outcome.reason}", error_code="FALLBACK_FAILED",
                           processing_time_ms=outcome.processing_time_ms)

        embedding = CombinedEmbedding(
            vector=outcome.value,
            dimension=self.legacy.dimension,
            metadata=EmbeddingMetadata(model=self.config.model_tag, fallback=True),
        )
        return Success(value=embedding, dimension=embedding.dimension, confidence=outcome.confidence,
                       processing_time_ms=outcome.processing_time_ms)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def generate(self, request: ContentEmbeddingRequest,
                       run: Optional[FusionRun] = None) -> ExtractionOutcome[CombinedEmbedding]:
        """
        Run the full pipeline for ``request``.

        Returns ``Success[CombinedEmbedding]`` or a ``Failure``; never raises.
        Pass ``run`` to observe the state history and per-modality outcomes.
        """
        run = run or FusionRun()
        if run.state != FusionState.PENDING:
            logger.error(f"Fusion run {run.run_id} is already {run.state.value}; a run cannot be reused")
            return Failure(reason=f"Fusion run {run.run_id} was already used (state={run.state.value})",
                           error_code="FUSION_ERROR")
        with ExecutionTimer() as timer:
            try:
                run.transition(FusionState.EXTRACTING)
                text, visual, transcript = await self._extract(request, run)

                if not text.is_success and not visual.is_success:
                    run.transition(FusionState.FALLBACK)
                    return await self._fallback(request)

                run.transition(FusionState.FUSING)
                embedding = self._fuse(text, visual, transcript)
                contributing = [o.confidence for o in (text, visual) if o.is_success]
                return Success(
                    value=embedding,
                    dimension=embedding.dimension,
                    confidence=sum(contributing) / len(contributing),
                    processing_time_ms=timer.elapsed_ms(),
                )
            except MFuseException as e:
                logger.error(f"Fusion run {run.run_id} failed: {ErrorHandler.describe(e)}")
                return Failure.from_exception(e, processing_time_ms=timer.elapsed_ms())
            except Exception as e:
                logger.opt(exception=True).error(f"Fusion run {run.run_id} crashed: {e}")
                return Failure(reason=ErrorHandler.describe(e), error_code="FUSION_ERROR",
                               processing_time_ms=timer.elapsed_ms())
            finally:
                await run.release_frames()
                run.transition(FusionState.DONE)
                logger.info(f"Fusion run {run.run_id} finished in {timer.elapsed_ms():.0f}ms")

    async def close(self):
        for provider in (self.text.provider, self.transcription.provider):
            if provider is not None:
                await provider.close()
        if self.visual.provider is not None:
            self.visual.provider.close()
