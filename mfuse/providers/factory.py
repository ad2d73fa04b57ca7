from typing import Any, Dict, Optional, Type
from loguru import logger

from .base import (
    MediaExtractor,
    EmbeddingProvider,
    ImageEmbeddingProvider,
    LegacyEmbeddingProvider,
    TranscriptionProvider,
    StorageProvider,
    VideoCompressorProvider,
)
from .custom_providers import (
    HashingEmbeddingProvider,
    HashingImageEmbeddingProvider,
    FfmpegMediaExtractor,
    LocalStorageProvider,
    FfmpegVideoCompressor,
)
from .openai_providers import OpenAIEmbeddingProvider, OpenAITranscriptionProvider
from ..utils.error_handler import ConfigurationException
from ..config.settings import (
    TextEmbeddingConfig,
    ClipConfig,
    WhisperConfig,
    MediaConfig,
    LegacyEmbeddingConfig,
    StorageConfig,
    CompressionConfig,
)


def _load_clip_provider() -> Type[ImageEmbeddingProvider]:
    from .custom_providers.image_embedding_provider import CLIPImageEmbeddingProvider
    return CLIPImageEmbeddingProvider


class ProviderFactory:
    """Factory class for creating provider instances from configuration sections."""

    _embedding_providers: Dict[str, Type[EmbeddingProvider]] = {
        'hashing': HashingEmbeddingProvider,
        'openai': OpenAIEmbeddingProvider,
    }

    _image_embedding_providers: Dict[str, Any] = {
        'hashing': HashingImageEmbeddingProvider,
        'clip': _load_clip_provider,
    }

    _transcription_providers: Dict[str, Type[TranscriptionProvider]] = {
        'openai': OpenAITranscriptionProvider,
    }

    _legacy_embedding_providers: Dict[str, Type[LegacyEmbeddingProvider]] = {
        'hashing': HashingEmbeddingProvider,
    }

    _media_extractors: Dict[str, Type[MediaExtractor]] = {
        'ffmpeg': FfmpegMediaExtractor,
    }

    _storage_providers: Dict[str, Type[StorageProvider]] = {
        'local': LocalStorageProvider,
    }

    _video_compressors: Dict[str, Type[VideoCompressorProvider]] = {
        'ffmpeg': FfmpegVideoCompressor,
    }

    @classmethod
    def _create(cls, kind: str, registry: Dict[str, Any], provider_name: str, config: Dict[str, Any]):
        if provider_name not in registry:
            raise ConfigurationException(
                f"Unknown {kind} provider: {provider_name}. "
                f"Supported providers: {list(registry.keys())}"
            )

        provider_class = registry[provider_name]
        if not isinstance(provider_class, type):
            provider_class = provider_class()
        logger.info(f"Creating {kind} provider: {provider_name}")
        return provider_class(config)

    @classmethod
    def create_embedding_provider(cls, config: Optional[TextEmbeddingConfig] = None) -> EmbeddingProvider:
        """
        Create the text embedding provider.

        Raises:
            ConfigurationException: If provider is not supported
        """
        config = config or TextEmbeddingConfig()
        return cls._create("text embedding", cls._embedding_providers, config.provider, config.model_dump())

    @classmethod
    def create_image_embedding_provider(cls, config: Optional[ClipConfig] = None) -> ImageEmbeddingProvider:
        config = config or ClipConfig()
        return cls._create("image embedding", cls._image_embedding_providers, config.provider, config.to_provider_config())

    @classmethod
    def create_transcription_provider(cls, config: Optional[WhisperConfig] = None) -> TranscriptionProvider:
        config = config or WhisperConfig()
        return cls._create("transcription", cls._transcription_providers, config.provider, config.model_dump())

    @classmethod
    def create_legacy_embedding_provider(cls, config: Optional[LegacyEmbeddingConfig] = None) -> LegacyEmbeddingProvider:
        config = config or LegacyEmbeddingConfig()
        return cls._create("legacy embedding", cls._legacy_embedding_providers, config.provider, config.model_dump())

    @classmethod
    def create_media_extractor(cls, config: Optional[MediaConfig] = None) -> MediaExtractor:
        config = config or MediaConfig()
        return cls._create("media extractor", cls._media_extractors, config.provider, config.model_dump())

    @classmethod
    def create_storage_provider(cls, config: Optional[StorageConfig] = None) -> StorageProvider:
        config = config or StorageConfig()
        return cls._create("storage", cls._storage_providers, config.provider, config.model_dump())

    @classmethod
    def create_video_compressor(cls, config: Optional[CompressionConfig] = None) -> VideoCompressorProvider:
        config = config or CompressionConfig()
        return cls._create("video compressor", cls._video_compressors, config.provider, config.model_dump())

    @classmethod
    def get_supported_providers(cls) -> Dict[str, list]:
        """Get list of supported providers by type."""
        return {
            "embedding": list(cls._embedding_providers.keys()),
            "image_embedding": list(cls._image_embedding_providers.keys()),
            "transcription": list(cls._transcription_providers.keys()),
            "legacy_embedding": list(cls._legacy_embedding_providers.keys()),
            "media_extractor": list(cls._media_extractors.keys()),
            "storage": list(cls._storage_providers.keys()),
            "video_compressor": list(cls._video_compressors.keys()),
        }

    @classmethod
    def register_embedding_provider(cls, name: str, provider_class: Type[EmbeddingProvider]):
        """Register a new text embedding provider."""
        cls._embedding_providers[name] = provider_class
        logger.info(f"Registered embedding provider: {name}")

    @classmethod
    def register_image_embedding_provider(cls, name: str, provider_class: Type[ImageEmbeddingProvider]):
        cls._image_embedding_providers[name] = provider_class
        logger.info(f"Registered image embedding provider: {name}")

    @classmethod
    def register_transcription_provider(cls, name: str, provider_class: Type[TranscriptionProvider]):
        cls._transcription_providers[name] = provider_class
        logger.info(f"Registered transcription provider: {name}")


# Global provider factory instance
provider_factory = ProviderFactory()
