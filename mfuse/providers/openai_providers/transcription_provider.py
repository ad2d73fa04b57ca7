import io
from loguru import logger
from typing import Any, Dict, Optional
from mfuse.utils.error_handler import ProviderException, ConfigurationException
from mfuse.providers.base import TranscriptionProvider
from mfuse.utils.error_handler import handle_exceptions, convert_exceptions
from openai import AsyncOpenAI


class OpenAITranscriptionProvider(TranscriptionProvider):
    """OpenAI Whisper transcription provider implementation."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.client = self._initialize_client()

    def _initialize_client(self):
        api_key = self.config.get("api_key")
        if not api_key:
            raise ConfigurationException("OpenAI API key is required")

        try:
            return AsyncOpenAI(
                api_key=api_key,
                timeout=self.config.get("timeout", 60),
                max_retries=self.config.get("max_retries", 2)
            )
        except Exception as e:
            raise ProviderException(f"Failed to initialize OpenAI client: {e}")

    @handle_exceptions(retries=3, exceptions=(ProviderException,))
    @convert_exceptions({Exception: ProviderException})
    async def transcribe(self, audio_data: bytes, language: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Transcribe wav bytes using OpenAI Whisper."""
        try:
            model = self.config.get("model", "whisper-1")
            language = language or self.config.get("language")

            audio_file = io.BytesIO(audio_data)
            audio_file.name = "audio.wav"  # Whisper needs a filename

            params = {"model": model, "file": audio_file, "response_format": "verbose_json"}
            if language:
                params["language"] = language
            response = await self.client.audio.transcriptions.create(**params, **kwargs)

            return {
                "text": response.text,
                "language": getattr(response, "language", None) or language,
            }
        except Exception as e:
            logger.error(f"OpenAI Whisper transcription failed: {e}")
            raise ProviderException(f"OpenAI Whisper transcription failed: {e}")

    async def close(self):
        """Close the transcription client and cleanup resources."""
        if self.client:
            logger.info("Closing OpenAI transcription client")
            await self.client.close()
