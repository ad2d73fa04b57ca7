from .media_extractor import MediaExtractor
from .embedding_provider import EmbeddingProvider
from .image_embedding_provider import ImageEmbeddingProvider
from .legacy_embedding_provider import LegacyEmbeddingProvider
from .transcription_provider import TranscriptionProvider
from .storage_provider import StorageProvider
from .video_compressor_provider import VideoCompressorProvider

__all__ = [
    'MediaExtractor',
    'EmbeddingProvider',
    'ImageEmbeddingProvider',
    'LegacyEmbeddingProvider',
    'TranscriptionProvider',
    'StorageProvider',
    'VideoCompressorProvider',
]
