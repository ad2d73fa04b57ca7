import pytest

from mfuse.config.settings import (
    ClipConfig,
    EmbeddingModelsConfig,
    LegacyEmbeddingConfig,
    MediaConfig,
    TextEmbeddingConfig,
    WeightConfig,
    WhisperConfig,
)
from mfuse.tests.fakes import FakeMediaExtractor, InMemoryMomentRepository


@pytest.fixture
def models_config():
    """Default model dimensions with short timeouts."""
    return EmbeddingModelsConfig(
        weights=WeightConfig(text=0.6, visual=0.4, engagement=0.0),
        text_embedding=TextEmbeddingConfig(provider="hashing", dimension=384, timeout=1.0),
        clip=ClipConfig(provider="hashing", dimension=512, max_frames=10, timeout=1.0),
        whisper=WhisperConfig(timeout=1.0),
        media=MediaConfig(audio_timeout=1.0, frames_timeout=1.0),
        legacy=LegacyEmbeddingConfig(dimension=128, timeout=1.0),
    )


@pytest.fixture
def extractor():
    return FakeMediaExtractor()


@pytest.fixture
def repository():
    return InMemoryMomentRepository()
