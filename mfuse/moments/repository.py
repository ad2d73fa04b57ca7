from abc import ABC, abstractmethod
from typing import Optional

from mfuse.embedding_pipeline.core.engagement import EngagementVector
from mfuse.embedding_pipeline.core.models import CombinedEmbedding
from mfuse.moments.models import Moment
from mfuse.moments.processing_status import ProcessingStep


class MomentRepository(ABC):
    """Persistence contract for moments."""

    @abstractmethod
    async def create(self, moment: Moment) -> Moment:
        pass

    @abstractmethod
    async def get(self, moment_id: str) -> Optional[Moment]:
        pass

    @abstractmethod
    async def upsert_step(self, moment_id: str, step: ProcessingStep) -> None:
        """
        Store one processing step, replacing the stored step of the same name.

        Other steps of the moment are left untouched, so two writers that own
        different steps never overwrite each other.
        """
        pass

    @abstractmethod
    async def save_embedding(self, moment_id: str, embedding: CombinedEmbedding) -> None:
        pass

    @abstractmethod
    async def save_engagement(self, moment_id: str, engagement: EngagementVector) -> None:
        pass

    @abstractmethod
    async def update_video_url(self, moment_id: str, video_url: str) -> None:
        pass
