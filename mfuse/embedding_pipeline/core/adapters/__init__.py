from .audio_adapter import AudioAdapter
from .frame_adapter import FrameAdapter
from .transcription_adapter import TranscriptionAdapter
from .visual_adapter import VisualEmbeddingAdapter
from .text_adapter import TextEmbeddingAdapter, build_text
from .legacy_adapter import LegacyEmbeddingAdapter

__all__ = [
    'AudioAdapter',
    'FrameAdapter',
    'TranscriptionAdapter',
    'VisualEmbeddingAdapter',
    'TextEmbeddingAdapter',
    'LegacyEmbeddingAdapter',
    'build_text',
]
