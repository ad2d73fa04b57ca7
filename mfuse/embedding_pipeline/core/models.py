from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VideoMetadata(BaseModel):
    """Technical properties of an uploaded video."""

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    duration: float = Field(default=0.0, ge=0, description="Duration in seconds")
    codec: Optional[str] = Field(default=None)
    has_audio: bool = Field(default=True)


class ContentEmbeddingRequest(BaseModel):
    """Immutable input to one fusion run."""

    model_config = ConfigDict(frozen=True)

    video_data: bytes = Field(..., repr=False)
    description: str = Field(default="")
    hashtags: List[str] = Field(default_factory=list)
    video_metadata: VideoMetadata = Field(default_factory=VideoMetadata)


class ComponentMetadata(BaseModel):
    confidence: float = Field(..., ge=0.0, le=1.0)
    processing_time_ms: float = Field(default=0.0, ge=0)
    dimension: Optional[int] = Field(default=None, description="Vector dimension, None for non-vector modalities")
    weight: Optional[float] = Field(default=None, description="Effective weight after renormalization")


class TextComponentMetadata(ComponentMetadata):
    token_count: int = Field(default=0, ge=0)
    text_length: int = Field(default=0, ge=0)


class VisualComponentMetadata(ComponentMetadata):
    frames_processed: int = Field(default=0, ge=0)


class TranscriptionComponentMetadata(ComponentMetadata):
    language: Optional[str] = Field(default=None)
    text_length: int = Field(default=0, ge=0)


class EmbeddingComponents(BaseModel):
    text: Optional[TextComponentMetadata] = None
    visual: Optional[VisualComponentMetadata] = None
    transcription: Optional[TranscriptionComponentMetadata] = None

    def vector_components(self) -> Dict[str, ComponentMetadata]:
        """Components that contributed a vector to the fused embedding."""
        return {name: meta for name, meta in (("text", self.text), ("visual", self.visual)) if meta is not None}

    def is_empty(self) -> bool:
        return self.text is None and self.visual is None and self.transcription is None


class CombinedFrom(BaseModel):
    components: int = Field(..., ge=1)
    weights: Dict[str, float] = Field(default_factory=dict)


class EmbeddingMetadata(BaseModel):
    model: str
    version: str = Field(default="v2")
    generated_at: datetime = Field(default_factory=_utcnow)
    fallback: bool = False
    components: EmbeddingComponents = Field(default_factory=EmbeddingComponents)
    combined_from: Optional[CombinedFrom] = None


class CombinedEmbedding(BaseModel):
    """
    Fused content vector persisted for a moment.

    Invariants checked on construction:
      - ``dimension`` equals ``len(vector)``.
      - a fallback embedding carries no component metadata.
      - a fused embedding's dimension is the sum of its vector components' dimensions.
    """

    vector: List[float]
    dimension: int = Field(..., gt=0)
    metadata: EmbeddingMetadata

    @model_validator(mode="after")
    def _check_shape(self):
        if self.dimension != len(self.vector):
            raise ValueError(f"dimension {self.dimension} does not match vector length {len(self.vector)}")

        components = self.metadata.components
        if self.metadata.fallback:
            if not components.is_empty():
                raise ValueError("fallback embedding must not carry component metadata")
            return self

        contributing = components.vector_components()
        if not contributing:
            raise ValueError("fused embedding needs at least one text or visual component")
        expected = sum(meta.dimension or 0 for meta in contributing.values())
        if expected != self.dimension:
            raise ValueError(
                f"dimension {self.dimension} does not equal the sum of component dimensions ({expected})"
            )
        return self
