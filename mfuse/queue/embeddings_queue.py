from typing import Optional

from loguru import logger

from mfuse.config.settings import QueueConfig
from mfuse.queue.base_queue import JobHandler, JobQueue
from mfuse.queue.jobs import EmbeddingJob, JobPriority, JobRecord, next_occurrence


class EmbeddingsQueue(JobQueue):
    """
    Embedding generation jobs.

    Jobs can run right away through ``add_job`` or be deferred to the next
    occurrence of a wall-clock time with ``schedule_for``; the default time
    comes from ``QueueConfig.embeddings_schedule_time``.
    """

    job_prefix = "embedding"

    def __init__(self, config: Optional[QueueConfig] = None, handler: Optional[JobHandler] = None, clock=None):
        self.config = config or QueueConfig()
        super().__init__(
            name="embeddings",
            handler=handler,
            concurrency=self.config.embedding_workers,
            clean_grace_seconds=self.config.clean_grace_seconds,
            clock=clock,
        )

    async def add_job(self, job: EmbeddingJob, priority: Optional[JobPriority] = None) -> JobRecord:
        return await self.enqueue(job, priority)

    async def schedule_for(self, job: EmbeddingJob, time_of_day: Optional[str] = None,
                           priority: Optional[JobPriority] = None) -> JobRecord:
        """Defer ``job`` until the next ``HH:MM`` local wall-clock instant."""
        time_of_day = time_of_day or self.config.embeddings_schedule_time
        dispatch_at = next_occurrence(time_of_day, self._now())
        job = job.model_copy(update={"scheduled_for": dispatch_at})
        record = await self.enqueue_at(job, dispatch_at, priority)
        logger.info(f"Embedding generation for moment {job.moment_id} scheduled at {dispatch_at:%Y-%m-%d %H:%M}")
        return record
