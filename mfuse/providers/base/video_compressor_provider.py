from abc import ABC, abstractmethod
from typing import Any, Dict


class VideoCompressorProvider(ABC):
    """Re-encodes a video into a smaller delivery rendition."""

    @abstractmethod
    async def compress(self, input_path: str, output_path: str, **kwargs) -> Dict[str, Any]:
        """
        Compress ``input_path`` into ``output_path``.

        Returns:
            Dict with at least ``output_path``, ``original_size`` and ``compressed_size`` (bytes)
        """
        pass
