"""Provider system for mfuse."""

from .base import (
    MediaExtractor,
    EmbeddingProvider,
    ImageEmbeddingProvider,
    LegacyEmbeddingProvider,
    TranscriptionProvider,
    StorageProvider,
    VideoCompressorProvider,
)
from .factory import ProviderFactory, provider_factory

__all__ = [
    # Base classes
    'MediaExtractor',
    'EmbeddingProvider',
    'ImageEmbeddingProvider',
    'LegacyEmbeddingProvider',
    'TranscriptionProvider',
    'StorageProvider',
    'VideoCompressorProvider',
    # Factory
    'ProviderFactory',
    'provider_factory',
]
