from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class TranscriptionProvider(ABC):
    """Abstract base class for transcription providers."""

    @abstractmethod
    async def transcribe(self, audio_data: bytes, language: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """
        Transcribe wav audio to text.

        Returns:
            Dict with ``text`` and, when the service detects it, ``language``
        """
        pass

    async def close(self):
        pass
