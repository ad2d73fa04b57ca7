from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator, field_validator
from typing import Optional
from dotenv import load_dotenv, find_dotenv
import os
import re

WEIGHT_SUM_TOLERANCE = 1e-6
_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _settings_config(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False,
    )


class WeightConfig(BaseSettings):
    """Fusion weights per modality. The three weights must sum to 1."""

    text: float = Field(default=0.6, ge=0.0, le=1.0)
    visual: float = Field(default=0.4, ge=0.0, le=1.0)
    engagement: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = _settings_config("FUSION_WEIGHT_")

    def __init__(self, **kwargs):
        # Force load environment variables before validation
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    @model_validator(mode="after")
    def _weights_sum_to_one(self):
        total = self.text + self.visual + self.engagement
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(
                f"Fusion weights must sum to 1 (text={self.text}, visual={self.visual}, "
                f"engagement={self.engagement}, sum={total})"
            )
        return self


class TextEmbeddingConfig(BaseSettings):
    """Text embedding model configuration."""

    provider: str = Field(default="hashing")
    enabled: bool = Field(default=True)
    model: str = Field(default="text-embedding-3-small")
    dimension: int = Field(default=384, gt=0)
    max_length: int = Field(default=512, gt=0)
    timeout: float = Field(default=30.0, gt=0)
    api_key: Optional[str] = Field(default=None)
    max_retries: int = Field(default=2, ge=0)

    model_config = _settings_config("TEXT_EMBEDDING_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class ClipConfig(BaseSettings):
    """Visual (CLIP) embedding configuration."""

    provider: str = Field(default="clip")
    enabled: bool = Field(default=True)
    model_name: str = Field(default="openai/clip-vit-base-patch32")
    device: str = Field(default="auto")
    dimension: int = Field(default=512, gt=0)
    frames_per_second: float = Field(default=1.0, gt=0)
    max_frames: int = Field(default=10, gt=0)
    max_image_size: int = Field(default=224, gt=0)
    batch_size: int = Field(default=8, gt=0)
    timeout: float = Field(default=60.0, gt=0)

    model_config = _settings_config("CLIP_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    def to_provider_config(self) -> dict:
        """Convert to provider configuration dictionary."""
        return {
            "model_name": self.model_name,
            "device": self.device,
            "dimension": self.dimension,
            "max_image_size": self.max_image_size,
            "batch_size": self.batch_size,
        }


class WhisperConfig(BaseSettings):
    """Speech-to-text configuration."""

    provider: str = Field(default="openai")
    enabled: bool = Field(default=True)
    model: str = Field(default="whisper-1")
    language: Optional[str] = Field(default=None)
    sample_rate: int = Field(default=16000, gt=0)
    audio_channels: int = Field(default=1, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    api_key: Optional[str] = Field(default=None)
    max_retries: int = Field(default=2, ge=0)

    model_config = _settings_config("WHISPER_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class MediaConfig(BaseSettings):
    """Audio/frame extraction settings."""

    provider: str = Field(default="ffmpeg")
    ffmpeg_binary: str = Field(default="ffmpeg")
    audio_timeout: float = Field(default=30.0, gt=0)
    frames_timeout: float = Field(default=30.0, gt=0)
    frame_quality: int = Field(default=2, ge=1, le=31)
    temp_dir: Optional[str] = Field(default=None)

    model_config = _settings_config("MEDIA_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class LegacyEmbeddingConfig(BaseSettings):
    """Single-vector generator used when the multi-modal pipeline yields nothing."""

    provider: str = Field(default="hashing")
    dimension: int = Field(default=128, gt=0)
    model_tag: str = Field(default="legacy-hash-embedding-v1")
    text_weight: float = Field(default=0.7, ge=0.0)
    tags_weight: float = Field(default=0.3, ge=0.0)
    timeout: float = Field(default=10.0, gt=0)

    model_config = _settings_config("LEGACY_EMBEDDING_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class EmbeddingModelsConfig(BaseSettings):
    """
    Aggregated model configuration for one fusion engine.

    profile="mock" keeps text embedding active and disables the heavy
    CLIP and Whisper models.
    """

    profile: str = Field(default="default")
    model_tag: str = Field(default="content-embedding-v2-pipeline")
    weights: WeightConfig = Field(default_factory=WeightConfig)
    text_embedding: TextEmbeddingConfig = Field(default_factory=TextEmbeddingConfig)
    clip: ClipConfig = Field(default_factory=ClipConfig)
    whisper: WhisperConfig = Field(default_factory=WhisperConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    legacy: LegacyEmbeddingConfig = Field(default_factory=LegacyEmbeddingConfig)

    model_config = _settings_config("EMBEDDING_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    @field_validator("profile")
    @classmethod
    def _known_profile(cls, value: str) -> str:
        value = value.lower()
        if value not in ("default", "mock"):
            raise ValueError(f"Unknown embedding profile: {value}")
        return value

    @model_validator(mode="after")
    def _apply_profile(self):
        if self.profile == "mock":
            self.clip.enabled = False
            self.whisper.enabled = False
            self.text_embedding.enabled = True
        return self

    @classmethod
    def mock(cls, **kwargs) -> "EmbeddingModelsConfig":
        return cls(profile="mock", **kwargs)


class QueueConfig(BaseSettings):
    """Job scheduling configuration."""

    compression_workers: int = Field(default=2, ge=1)
    embedding_workers: int = Field(default=1, ge=1)
    embeddings_schedule_time: str = Field(default="01:00")
    clean_grace_seconds: float = Field(default=86400.0, gt=0)

    model_config = _settings_config("QUEUE_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        # EMBEDDINGS_SCHEDULE_TIME is the historical name of the dispatch time variable
        if ("embeddings_schedule_time" not in kwargs and os.getenv("EMBEDDINGS_SCHEDULE_TIME")
                and not os.getenv("QUEUE_EMBEDDINGS_SCHEDULE_TIME")):
            kwargs["embeddings_schedule_time"] = os.getenv("EMBEDDINGS_SCHEDULE_TIME")
        super().__init__(**kwargs)

    @field_validator("embeddings_schedule_time")
    @classmethod
    def _valid_time_of_day(cls, value: str) -> str:
        if not _TIME_OF_DAY.match(value):
            raise ValueError(f"Schedule time must be HH:MM, got {value!r}")
        return value


class StorageConfig(BaseSettings):
    """Storage configuration."""

    provider: str = Field(default="local")
    base_path: str = Field(default="./local_storage")
    download_timeout: float = Field(default=60.0, gt=0)

    model_config = _settings_config("STORAGE_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class CompressionConfig(BaseSettings):
    """Video compression settings for the compression worker."""

    provider: str = Field(default="ffmpeg")
    video_codec: str = Field(default="libx264")
    audio_codec: str = Field(default="aac")
    preset: str = Field(default="slow")
    crf: int = Field(default=28, ge=0, le=51)
    audio_bitrate_kbps: int = Field(default=64, gt=0)
    max_width: int = Field(default=720, gt=0)
    output_dir: str = Field(default="compressed")

    model_config = _settings_config("COMPRESSION_")

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    enable_json: bool = Field(default=False)
    enable_file_logging: bool = Field(default=False)
    max_file_size: str = Field(default="10 MB")
    retention_days: int = Field(default=7)

    model_config = _settings_config("LOG_")


class MFuseConfig(BaseSettings):
    """Main configuration class."""

    app_name: str = Field(default="mfuse")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    model_config = _settings_config("MFUSE_")

    def __init__(self, **kwargs):
        # Force load environment variables before initializing
        load_dotenv(find_dotenv())

        super().__init__(**kwargs)
        # Initialize cached configurations
        self._models = None
        self._queue = None
        self._storage = None
        self._compression = None
        self._logging = None

    @property
    def models(self) -> EmbeddingModelsConfig:
        if self._models is None:
            self._models = EmbeddingModelsConfig()
        return self._models

    @property
    def queue(self) -> QueueConfig:
        if self._queue is None:
            self._queue = QueueConfig()
        return self._queue

    @property
    def storage(self) -> StorageConfig:
        if self._storage is None:
            self._storage = StorageConfig()
        return self._storage

    @property
    def compression(self) -> CompressionConfig:
        if self._compression is None:
            self._compression = CompressionConfig()
        return self._compression

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            self._logging = LoggingConfig()
        return self._logging
