from abc import ABC, abstractmethod
from typing import List

from mfuse.embedding_pipeline.core.outcomes import Frame


class MediaExtractor(ABC):
    """Pulls an audio track and sampled frames out of raw video bytes."""

    @abstractmethod
    async def extract_audio(self, video_data: bytes, sample_rate: int, channels: int) -> bytes:
        """Return the audio track as wav bytes; empty bytes when the video has no audio."""
        pass

    @abstractmethod
    async def extract_frames(self, video_data: bytes, fps: float, max_frames: int) -> List[Frame]:
        """Sample up to ``max_frames`` frames at ``fps`` frames per second."""
        pass

    @abstractmethod
    async def cleanup_frames(self, frames: List[Frame]) -> None:
        """Delete whatever temporary storage backs ``frames``."""
        pass
