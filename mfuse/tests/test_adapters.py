"""
Unit tests for the extraction adapters.

Every adapter must turn provider errors into a Failure instead of raising.
"""

import numpy as np
import pytest

from mfuse.embedding_pipeline.core.adapters import (
    AudioAdapter,
    FrameAdapter,
    LegacyEmbeddingAdapter,
    TextEmbeddingAdapter,
    TranscriptionAdapter,
    VisualEmbeddingAdapter,
    build_text,
)
from mfuse.embedding_pipeline.core.adapters.text_adapter import estimate_tokens, truncate_at_word
from mfuse.embedding_pipeline.core.outcomes import AudioTrack, Frame, FrameSet
from mfuse.exceptions import ProviderException
from mfuse.providers.custom_providers import HashingEmbeddingProvider
from mfuse.tests.fakes import (
    FailingLegacyProvider,
    FakeImageProvider,
    FakeMediaExtractor,
    FakeTextProvider,
    FakeTranscriptionProvider,
    make_png,
    make_wav,
)


# ============================================================================
# Audio
# ============================================================================

@pytest.mark.asyncio
async def test_audio_track_duration_comes_from_wav_header():
    adapter = AudioAdapter(FakeMediaExtractor(audio=make_wav(seconds=2.0)))

    outcome = await adapter.extract(b"video")

    assert outcome.is_success
    assert outcome.value.duration == pytest.approx(2.0)
    assert outcome.value.sample_rate == 16000


@pytest.mark.asyncio
async def test_audio_fails_without_audio_track():
    outcome = await AudioAdapter(FakeMediaExtractor()).extract(b"video", has_audio=False)
    assert outcome.error_code == "NO_AUDIO"


@pytest.mark.asyncio
async def test_audio_provider_error_becomes_failure():
    adapter = AudioAdapter(FakeMediaExtractor(audio_error=ProviderException("ffmpeg exited with 1")))

    outcome = await adapter.extract(b"video")

    assert not outcome.is_success
    assert outcome.error_code == "PROVIDER_ERROR"


@pytest.mark.asyncio
async def test_disabled_adapter_short_circuits():
    outcome = await AudioAdapter(FakeMediaExtractor(), enabled=False).extract(b"video")
    assert outcome.error_code == "DISABLED"


# ============================================================================
# Frames
# ============================================================================

@pytest.mark.asyncio
async def test_frames_are_returned_as_releasable_set():
    extractor = FakeMediaExtractor(frame_count=4)

    outcome = await FrameAdapter(extractor, max_frames=10).extract(b"video")

    assert outcome.is_success
    async with outcome.value as frame_set:
        assert len(frame_set) == 4
    assert len(extractor.cleaned) == 4


@pytest.mark.asyncio
async def test_frames_beyond_limit_are_cleaned_immediately():
    extractor = FakeMediaExtractor(frame_count=5)

    outcome = await FrameAdapter(extractor, max_frames=3).extract(b"video")

    assert len(outcome.value) == 3
    assert len(extractor.cleaned) == 2


@pytest.mark.asyncio
async def test_no_frames_is_a_failure():
    outcome = await FrameAdapter(FakeMediaExtractor(frame_count=0)).extract(b"video")
    assert outcome.error_code == "NO_FRAMES"


# ============================================================================
# Transcription
# ============================================================================

def _track():
    return AudioTrack(data=make_wav(), duration=1.0, sample_rate=16000, channels=1)


@pytest.mark.asyncio
async def test_transcription_success():
    outcome = await TranscriptionAdapter(FakeTranscriptionProvider(text=" surf's up ")).transcribe(_track())

    assert outcome.is_success
    assert outcome.value.text == "surf's up"
    assert outcome.value.language == "en"
    assert 0.0 < outcome.confidence <= 1.0


@pytest.mark.asyncio
async def test_empty_transcript_is_a_failure():
    outcome = await TranscriptionAdapter(FakeTranscriptionProvider(text="   ")).transcribe(_track())
    assert outcome.error_code == "EMPTY_TRANSCRIPT"


@pytest.mark.asyncio
async def test_missing_transcription_provider_disables_adapter():
    adapter = TranscriptionAdapter(None)
    assert adapter.enabled is False
    assert (await adapter.transcribe(_track())).error_code == "DISABLED"


# ============================================================================
# Visual
# ============================================================================

def _frame_set(count=3):
    return FrameSet(frames=[Frame(data=make_png((i * 50, 10, 10)), timestamp=float(i)) for i in range(count)])


@pytest.mark.asyncio
async def test_visual_embedding_is_pooled_and_normalized():
    outcome = await VisualEmbeddingAdapter(FakeImageProvider(dimension=512), dimension=512).embed(_frame_set())

    assert outcome.is_success
    assert outcome.value.frames_processed == 3
    assert outcome.dimension == 512
    assert np.linalg.norm(outcome.value.vector) == pytest.approx(1.0)
    assert outcome.confidence == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_unreadable_frames_are_skipped():
    frame_set = _frame_set(2)
    frame_set.frames.append(Frame(data=b"not an image", timestamp=9.0))

    outcome = await VisualEmbeddingAdapter(FakeImageProvider(), dimension=512).embed(frame_set)

    assert outcome.value.frames_processed == 2
    assert outcome.confidence == pytest.approx(2 / 3)


@pytest.mark.asyncio
async def test_visual_fails_when_no_frame_embeds():
    adapter = VisualEmbeddingAdapter(FakeImageProvider(error=ProviderException("gpu lost")), dimension=512)
    outcome = await adapter.embed(_frame_set())
    assert outcome.error_code == "NO_FRAME_EMBEDDINGS"


# ============================================================================
# Text
# ============================================================================

def test_build_text_order_and_hashtags():
    text = build_text("Sunset ride", "the waves are huge", ["surf", "#beach", ""])
    assert text == "Sunset ride the waves are huge #surf #beach"


def test_build_text_skips_missing_transcript():
    assert build_text("Sunset ride", None, ["surf"]) == "Sunset ride #surf"


def test_truncate_at_word_boundary():
    assert truncate_at_word("alpha beta gamma", 12) == "alpha beta"
    assert truncate_at_word("short", 12) == "short"


def test_estimate_tokens():
    assert estimate_tokens("abcdefgh") == 2
    assert estimate_tokens("abcdefghi") == 3


@pytest.mark.asyncio
async def test_text_embedding_success():
    provider = FakeTextProvider(dimension=384)

    outcome = await TextEmbeddingAdapter(provider, dimension=384).embed("Sunset ride #surf")

    assert outcome.is_success
    assert outcome.value.text_length == len("Sunset ride #surf")
    assert outcome.value.token_count == estimate_tokens("Sunset ride #surf")
    assert provider.texts == ["Sunset ride #surf"]


@pytest.mark.asyncio
async def test_text_dimension_mismatch():
    outcome = await TextEmbeddingAdapter(FakeTextProvider(dimension=100), dimension=384).embed("hello")
    assert outcome.error_code == "DIMENSION_MISMATCH"


@pytest.mark.asyncio
async def test_empty_text_is_a_failure():
    outcome = await TextEmbeddingAdapter(FakeTextProvider(), dimension=384).embed("   ")
    assert outcome.error_code == "EMPTY_TEXT"


# ============================================================================
# Legacy
# ============================================================================

@pytest.mark.asyncio
async def test_legacy_embedding_has_fixed_dimension():
    adapter = LegacyEmbeddingAdapter(HashingEmbeddingProvider({"dimension": 128}))

    outcome = await adapter.embed("Sunset ride", ["surf"])

    assert outcome.is_success
    assert len(outcome.value) == 128 == adapter.dimension
    assert np.linalg.norm(outcome.value) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_legacy_provider_error_becomes_failure():
    outcome = await LegacyEmbeddingAdapter(FailingLegacyProvider({"dimension": 128})).embed("x", [])
    assert not outcome.is_success
