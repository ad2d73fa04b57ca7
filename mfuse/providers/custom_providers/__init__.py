from .hashing_embedding_provider import HashingEmbeddingProvider, HashingImageEmbeddingProvider
from .media_extractor import FfmpegMediaExtractor
from .storage_provider import LocalStorageProvider
from .video_compressor import FfmpegVideoCompressor

# CLIPImageEmbeddingProvider lives in .image_embedding_provider and is imported
# on demand by the factory; it pulls in torch and transformers.

__all__ = [
    'HashingEmbeddingProvider',
    'HashingImageEmbeddingProvider',
    'FfmpegMediaExtractor',
    'LocalStorageProvider',
    'FfmpegVideoCompressor',
]
