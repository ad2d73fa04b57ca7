import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from mfuse.embedding_pipeline.core.engagement import EngagementVector
from mfuse.embedding_pipeline.core.models import CombinedEmbedding, VideoMetadata
from mfuse.moments.processing_status import ProcessingStatus


class Moment(BaseModel):
    """The part of a moment record the embedding and compression pipeline reads and writes."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str
    video_url: str
    thumbnail_url: Optional[str] = None
    description: str = ""
    hashtags: List[str] = Field(default_factory=list)
    video_metadata: VideoMetadata = Field(default_factory=VideoMetadata)
    processing: ProcessingStatus = Field(default_factory=ProcessingStatus)
    embedding: Optional[CombinedEmbedding] = None
    engagement: Optional[EngagementVector] = None
