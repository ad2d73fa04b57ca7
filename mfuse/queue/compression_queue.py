from typing import Optional

from loguru import logger

from mfuse.config.settings import QueueConfig
from mfuse.queue.base_queue import JobHandler, JobQueue
from mfuse.queue.jobs import CompressionJob, JobPriority, JobRecord, next_occurrence


class VideoCompressionQueue(JobQueue):
    """Compression jobs, dispatched immediately at high priority by default or deferred with ``schedule_for``."""

    job_prefix = "compression"

    def __init__(self, config: Optional[QueueConfig] = None, handler: Optional[JobHandler] = None, clock=None):
        config = config or QueueConfig()
        super().__init__(
            name="video-compression",
            handler=handler,
            concurrency=config.compression_workers,
            clean_grace_seconds=config.clean_grace_seconds,
            clock=clock,
        )

    async def add_job(self, job: CompressionJob, priority: Optional[JobPriority] = None) -> JobRecord:
        record = await self.enqueue(job, priority)
        logger.info(f"Video compression queued for moment {job.moment_id}")
        return record

    async def schedule_for(self, job: CompressionJob, time_of_day: str,
                           priority: Optional[JobPriority] = None) -> JobRecord:
        """Defer ``job`` until the next ``HH:MM`` local wall-clock instant."""
        dispatch_at = next_occurrence(time_of_day, self._now())
        record = await self.enqueue_at(job, dispatch_at, priority)
        logger.info(f"Video compression for moment {job.moment_id} scheduled at {dispatch_at:%Y-%m-%d %H:%M}")
        return record
