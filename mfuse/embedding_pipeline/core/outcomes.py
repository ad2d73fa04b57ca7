"""
Extraction outcomes and the per-modality payloads they carry.

Every adapter returns either a ``Success`` wrapping its payload or a
``Failure`` describing why the modality is missing. Callers branch on
``outcome.is_success``; a ``Failure`` never carries a value.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, ClassVar, Generic, List, Optional, TypeVar, Union

from loguru import logger

from mfuse.exceptions import MFuseException

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    dimension: Optional[int] = None
    confidence: float = 1.0
    processing_time_ms: float = 0.0

    is_success: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    reason: str
    error_code: str = "EXTRACTION_FAILED"
    processing_time_ms: float = 0.0

    is_success: ClassVar[bool] = False

    @classmethod
    def from_exception(cls, e: BaseException, processing_time_ms: float = 0.0) -> "Failure":
        if isinstance(e, MFuseException) and e.error_code:
            code = e.error_code
        elif isinstance(e, asyncio.TimeoutError):
            code = "TIMEOUT"
        else:
            code = "PROVIDER_ERROR"
        return cls(reason=str(e) or type(e).__name__, error_code=code, processing_time_ms=processing_time_ms)


ExtractionOutcome = Union[Success[T], Failure]


# ============================================================
# Modality payloads
# ============================================================

@dataclass(frozen=True)
class AudioTrack:
    """Mono/stereo PCM (wav) audio pulled out of a video."""
    data: bytes
    duration: float
    sample_rate: int
    channels: int


@dataclass(frozen=True)
class Frame:
    """A single sampled frame. ``path`` is set when the frame lives on disk."""
    data: bytes
    timestamp: float
    path: Optional[str] = None


@dataclass(frozen=True)
class Transcript:
    text: str
    language: Optional[str] = None
    confidence: float = 0.0


@dataclass(frozen=True)
class VisualEmbedding:
    vector: List[float]
    frames_processed: int


@dataclass(frozen=True)
class TextEmbedding:
    vector: List[float]
    token_count: int
    text_length: int


@dataclass
class FrameSet:
    """
    Frames owned by exactly one fusion run.

    The set holds temporary files (or buffers) that must be given back through
    ``release``. Use it as an async context manager, or call ``release``
    directly; releasing twice is a no-op.
    """
    frames: List[Frame]
    source: str = "memory"
    cleanup: Optional[Callable[[List[Frame]], Awaitable[None]]] = field(default=None, repr=False)
    released: bool = field(default=False, init=False)

    def __len__(self) -> int:
        return len(self.frames)

    async def release(self) -> None:
        if self.released:
            return
        self.released = True
        frames, self.frames = self.frames, []
        if self.cleanup is None:
            return
        try:
            await self.cleanup(frames)
        except Exception as e:
            logger.warning(f"Failed to clean up {len(frames)} frames from {self.source}: {e}")

    async def __aenter__(self) -> "FrameSet":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.release()
