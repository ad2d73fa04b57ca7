from typing import Optional

from loguru import logger

from mfuse.config.settings import QueueConfig
from mfuse.moments.models import Moment
from mfuse.moments.processing_status import ProcessingStepName
from mfuse.moments.repository import MomentRepository
from mfuse.queue.compression_queue import VideoCompressionQueue
from mfuse.queue.embeddings_queue import EmbeddingsQueue
from mfuse.queue.jobs import CompressionJob, EmbeddingJob, JobPriority
from mfuse.utils.error_handler import ErrorHandler, ValidationException, log_exceptions


class MomentIngestionService:
    """
    Creates moments and hands them to the background pipelines.

    Compression is queued right away at high priority. Embedding generation
    is deferred to the configured time of day. Neither failure affects the
    moment that was just created: a step whose job could not be queued stays
    pending, with the reason in its ``error`` field.
    """

    def __init__(
        self,
        repository: MomentRepository,
        compression_queue: VideoCompressionQueue,
        embeddings_queue: EmbeddingsQueue,
        config: Optional[QueueConfig] = None,
    ):
        self.repository = repository
        self.compression_queue = compression_queue
        self.embeddings_queue = embeddings_queue
        self.config = config or QueueConfig()

    @log_exceptions(log_level="WARNING", include_traceback=False, custom_message="Moment creation failed")
    async def create_moment(self, moment: Moment) -> Moment:
        if not moment.owner_id or not moment.video_url:
            raise ValidationException("A moment needs an owner and a video url",
                                      details={"owner_id": moment.owner_id, "video_url": moment.video_url})

        # steps are persisted with the moment, before any worker can see a job for it
        moment.processing.ensure(ProcessingStepName.VIDEO_COMPRESSION)
        moment.processing.ensure(ProcessingStepName.EMBEDDING_GENERATION)
        created = await self.repository.create(moment)
        logger.info(f"Moment {created.id} created for owner {created.owner_id}")

        await self._queue_compression(created)
        await self._schedule_embedding(created)
        return created

    async def _queue_compression(self, moment: Moment) -> bool:
        job = CompressionJob(
            moment_id=moment.id,
            video_url=moment.video_url,
            owner_id=moment.owner_id,
            video_metadata=moment.video_metadata,
        )
        try:
            await self.compression_queue.add_job(job, JobPriority.HIGH)
            return True
        except Exception as e:
            logger.error(f"Failed to queue compression for moment {moment.id}: {ErrorHandler.describe(e)}")
            await self._mark_unscheduled(moment, ProcessingStepName.VIDEO_COMPRESSION, e)
            return False

    async def _schedule_embedding(self, moment: Moment) -> bool:
        job = EmbeddingJob(
            moment_id=moment.id,
            video_url=moment.video_url,
            description=moment.description,
            hashtags=moment.hashtags,
            video_metadata=moment.video_metadata,
        )
        try:
            await self.embeddings_queue.schedule_for(job, self.config.embeddings_schedule_time, JobPriority.NORMAL)
            return True
        except Exception as e:
            logger.error(f"Failed to schedule embedding for moment {moment.id}: {ErrorHandler.describe(e)}")
            await self._mark_unscheduled(moment, ProcessingStepName.EMBEDDING_GENERATION, e)
            return False

    async def _mark_unscheduled(self, moment: Moment, name: ProcessingStepName, error: Exception):
        """Leave the step pending and record why no job backs it, for later reconciliation."""
        step = moment.processing.ensure(name)
        step.error = f"not scheduled: {ErrorHandler.describe(error)}"
        try:
            await self.repository.upsert_step(moment.id, step)
        except Exception as e:
            logger.error(f"Could not record {name.value} for moment {moment.id}: {ErrorHandler.describe(e)}")
