import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

from mfuse.embedding_pipeline.core.models import VideoMetadata
from mfuse.exceptions import QueueSchedulingError

_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")


class JobPriority(IntEnum):
    """Lower value dispatches first."""
    HIGH = 1
    NORMAL = 5
    LOW = 10


class JobStatus(str, Enum):
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class EmbeddingJob(BaseModel):
    moment_id: str
    video_url: str
    description: str = ""
    hashtags: List[str] = Field(default_factory=list)
    video_metadata: VideoMetadata = Field(default_factory=VideoMetadata)
    priority: JobPriority = JobPriority.NORMAL
    scheduled_for: Optional[datetime] = None

    @property
    def job_id(self) -> str:
        return f"embedding-{self.moment_id}"


class CompressionJob(BaseModel):
    moment_id: str
    video_url: str
    owner_id: Optional[str] = None
    video_metadata: VideoMetadata = Field(default_factory=VideoMetadata)
    priority: JobPriority = JobPriority.HIGH

    @property
    def job_id(self) -> str:
        return f"compression-{self.moment_id}"


@dataclass
class JobRecord:
    """Queue-side state of one job."""
    job_id: str
    job: Any
    priority: JobPriority
    sequence: int
    status: JobStatus
    enqueued_at: datetime
    dispatch_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    attempts: int = 0
    result: Any = None
    error: Optional[str] = None
    worker_id: Optional[int] = field(default=None, repr=False)


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` (24h clock)."""
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise QueueSchedulingError(f"Invalid time of day {value!r}, expected HH:MM", details={"value": value})
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise QueueSchedulingError(f"Time of day out of range: {value!r}", details={"value": value})
    return hours, minutes


def next_occurrence(time_of_day: str, now: datetime) -> datetime:
    """
    Next wall-clock instant matching ``time_of_day``.

    Today if that instant is still strictly in the future, otherwise the
    same time tomorrow.
    """
    hours, minutes = parse_time_of_day(time_of_day)
    target = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return target
