"""
Test suite for CLIPImageEmbeddingProvider.
Only construction is exercised here; the model itself loads on first use.
"""

import pytest

pytest.importorskip("torch")
pytest.importorskip("transformers")

from mfuse.config.settings import ClipConfig  # noqa: E402
from mfuse.providers import ProviderFactory  # noqa: E402
from mfuse.providers.custom_providers.image_embedding_provider import CLIPImageEmbeddingProvider  # noqa: E402


def test_factory_resolves_clip_lazily():
    provider = ProviderFactory.create_image_embedding_provider(ClipConfig(provider="clip", device="cpu"))

    assert isinstance(provider, CLIPImageEmbeddingProvider)
    assert provider.model is None
    assert provider.device == "cpu"
    assert provider.dimension == 512


def test_accepts_config_section():
    provider = CLIPImageEmbeddingProvider(ClipConfig(batch_size=4, max_image_size=128, device="cpu"))
    assert provider.batch_size == 4
    assert provider.max_image_size == 128
