from .embedding_provider import OpenAIEmbeddingProvider
from .transcription_provider import OpenAITranscriptionProvider

__all__ = [
    'OpenAIEmbeddingProvider',
    'OpenAITranscriptionProvider',
]
