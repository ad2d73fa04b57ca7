import asyncio
import dataclasses

import pytest
from pydantic import ValidationError

from mfuse.embedding_pipeline.core.models import (
    CombinedEmbedding,
    CombinedFrom,
    ContentEmbeddingRequest,
    EmbeddingComponents,
    EmbeddingMetadata,
    TextComponentMetadata,
    VisualComponentMetadata,
)
from mfuse.embedding_pipeline.core.outcomes import Failure, Frame, FrameSet, Success, Transcript
from mfuse.exceptions import ExtractionTimeoutError, InvalidWeightsError


# ============================================================================
# Outcomes
# ============================================================================

def test_success_and_failure_discriminate():
    ok = Success(value=Transcript(text="hi"), confidence=0.9)
    failed = Failure(reason="boom")

    assert ok.is_success is True
    assert failed.is_success is False
    assert not hasattr(failed, "value")


def test_outcomes_are_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        Success(value=1).value = 2


@pytest.mark.parametrize("error,code", [
    (ExtractionTimeoutError("audio", 1.0), "TIMEOUT"),
    (asyncio.TimeoutError(), "TIMEOUT"),
    (InvalidWeightsError("bad"), "FUSION_INPUT_ERROR"),
    (RuntimeError("kaput"), "PROVIDER_ERROR"),
])
def test_failure_from_exception_codes(error, code):
    failure = Failure.from_exception(error, processing_time_ms=12.0)
    assert failure.error_code == code
    assert failure.processing_time_ms == 12.0
    assert failure.reason


# ============================================================================
# FrameSet
# ============================================================================

@pytest.mark.asyncio
async def test_frame_set_release_is_idempotent():
    released = []

    async def cleanup(frames):
        released.append(list(frames))

    frame_set = FrameSet(frames=[Frame(data=b"a", timestamp=0.0)], cleanup=cleanup)
    await frame_set.release()
    await frame_set.release()

    assert len(released) == 1
    assert frame_set.released
    assert len(frame_set) == 0


@pytest.mark.asyncio
async def test_frame_set_context_manager_releases_on_error():
    released = []

    async def cleanup(frames):
        released.extend(frames)

    with pytest.raises(RuntimeError):
        async with FrameSet(frames=[Frame(data=b"a", timestamp=0.0)], cleanup=cleanup):
            raise RuntimeError("downstream failure")

    assert len(released) == 1


@pytest.mark.asyncio
async def test_frame_set_cleanup_error_is_not_raised():
    async def cleanup(frames):
        raise OSError("disk gone")

    frame_set = FrameSet(frames=[Frame(data=b"a", timestamp=0.0)], cleanup=cleanup)
    await frame_set.release()
    assert frame_set.released


# ============================================================================
# Records
# ============================================================================

def test_request_is_frozen():
    request = ContentEmbeddingRequest(video_data=b"x", description="d")
    with pytest.raises(ValidationError):
        request.description = "changed"


def _fused_metadata(text_dim=3, visual_dim=2):
    return EmbeddingMetadata(
        model="content-embedding-v2-pipeline",
        components=EmbeddingComponents(
            text=TextComponentMetadata(confidence=1.0, dimension=text_dim),
            visual=VisualComponentMetadata(confidence=1.0, dimension=visual_dim),
        ),
        combined_from=CombinedFrom(components=2, weights={"text": 0.6, "visual": 0.4}),
    )


def test_combined_embedding_accepts_consistent_shapes():
    embedding = CombinedEmbedding(vector=[0.1] * 5, dimension=5, metadata=_fused_metadata())
    assert embedding.metadata.version == "v2"
    assert embedding.metadata.fallback is False


def test_dimension_must_match_vector():
    with pytest.raises(ValidationError):
        CombinedEmbedding(vector=[0.1] * 4, dimension=5, metadata=_fused_metadata())


def test_fused_dimension_is_sum_of_components():
    with pytest.raises(ValidationError):
        CombinedEmbedding(vector=[0.1] * 6, dimension=6, metadata=_fused_metadata())


def test_fallback_carries_no_components():
    CombinedEmbedding(vector=[1.0, 0.0], dimension=2, metadata=EmbeddingMetadata(model="m", fallback=True))

    metadata = _fused_metadata()
    metadata.fallback = True
    with pytest.raises(ValidationError):
        CombinedEmbedding(vector=[0.1] * 5, dimension=5, metadata=metadata)


def test_fused_embedding_needs_a_vector_component():
    with pytest.raises(ValidationError):
        CombinedEmbedding(vector=[0.1], dimension=1, metadata=EmbeddingMetadata(model="m"))
