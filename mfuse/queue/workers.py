"""
Job handlers for the compression and embeddings queues.

Each worker is an awaitable callable so it can be handed straight to
``JobQueue.start``. A worker writes only its own processing step, at every
transition, and re-raises on failure so the queue records the job as failed.
A job whose step is already completed is skipped without any work.
"""

import os
import shutil
import tempfile
from typing import Any, Dict, Optional

import aiofiles
from loguru import logger

from mfuse.config.settings import CompressionConfig
from mfuse.embedding_pipeline.core.fusion import ContentEmbeddingGenerator
from mfuse.embedding_pipeline.core.models import CombinedEmbedding, ContentEmbeddingRequest
from mfuse.exceptions import MFuseException, ResourceNotFoundException
from mfuse.moments.models import Moment
from mfuse.moments.processing_status import ProcessingStepName
from mfuse.moments.repository import MomentRepository
from mfuse.providers.base import StorageProvider, VideoCompressorProvider
from mfuse.queue.jobs import CompressionJob, EmbeddingJob
from mfuse.utils.error_handler import ErrorHandler
from mfuse.utils.execution_timer import ExecutionTimer


class _StepWorker:
    step: ProcessingStepName

    def __init__(self, repository: MomentRepository, storage: StorageProvider):
        self.repository = repository
        self.storage = storage

    async def _load(self, moment_id: str) -> Moment:
        moment = await self.repository.get(moment_id)
        if moment is None:
            raise ResourceNotFoundException(f"Moment {moment_id} not found")
        return moment

    def _already_completed(self, moment: Moment) -> bool:
        step = moment.processing.get(self.step)
        if step is None or step.completed_at is None:
            return False
        logger.warning(f"Skipping {self.step.value} job for moment {moment.id}: "
                       f"step completed at {step.completed_at.isoformat()}")
        return True

    async def _save_step(self, moment: Moment):
        await self.repository.upsert_step(moment.id, moment.processing.get(self.step))

    async def _start(self, moment: Moment):
        moment.processing.start(self.step)
        await self._save_step(moment)

    async def _progress(self, moment: Moment, progress: float):
        moment.processing.update_progress(self.step, progress)
        await self._save_step(moment)

    async def _complete(self, moment: Moment):
        moment.processing.complete(self.step)
        await self._save_step(moment)

    async def _fail(self, moment: Moment, error: Exception):
        moment.processing.fail(self.step, ErrorHandler.describe(error))
        try:
            await self._save_step(moment)
        except Exception as e:
            logger.error(f"Could not record {self.step.value} failure for moment {moment.id}: {e}")


class EmbeddingsWorker(_StepWorker):
    """Downloads the moment video, runs fusion and stores the embedding."""

    step = ProcessingStepName.EMBEDDING_GENERATION

    def __init__(self, repository: MomentRepository, storage: StorageProvider,
                 generator: ContentEmbeddingGenerator):
        super().__init__(repository, storage)
        self.generator = generator

    async def __call__(self, job: EmbeddingJob) -> Optional[CombinedEmbedding]:
        return await self.process(job)

    async def process(self, job: EmbeddingJob) -> Optional[CombinedEmbedding]:
        """Return the stored embedding, untouched, when the step was already completed."""
        moment = await self._load(job.moment_id)
        if self._already_completed(moment):
            return moment.embedding
        await self._start(moment)

        with ExecutionTimer() as timer:
            try:
                video_data = await self.storage.download_bytes(job.video_url)
                await self._progress(moment, 20.0)
                request = ContentEmbeddingRequest(
                    video_data=video_data,
                    description=job.description,
                    hashtags=job.hashtags,
                    video_metadata=job.video_metadata,
                )
                outcome = await self.generator.generate(request)
                if not outcome.is_success:
                    raise MFuseException(f"Embedding generation failed: {outcome.reason}",
                                         error_code=outcome.error_code)
                await self._progress(moment, 80.0)

                embedding = outcome.value
                await self.repository.save_embedding(moment.id, embedding)
                await self._complete(moment)
            except Exception as e:
                logger.error(f"Embedding job for moment {moment.id} failed: {ErrorHandler.describe(e)}")
                await self._fail(moment, e)
                raise

        logger.info(
            f"Embedding stored for moment {moment.id}: dim={embedding.dimension} "
            f"fallback={embedding.metadata.fallback} in {timer.elapsed_ms():.0f}ms"
        )
        return embedding


class VideoCompressionWorker(_StepWorker):
    """Re-encodes the moment video and points the moment at the compressed copy."""

    step = ProcessingStepName.VIDEO_COMPRESSION

    def __init__(self, repository: MomentRepository, storage: StorageProvider,
                 compressor: VideoCompressorProvider, config: Optional[CompressionConfig] = None):
        super().__init__(repository, storage)
        self.compressor = compressor
        self.config = config or CompressionConfig()

    async def __call__(self, job: CompressionJob) -> Dict[str, Any]:
        return await self.process(job)

    async def process(self, job: CompressionJob) -> Dict[str, Any]:
        moment = await self._load(job.moment_id)
        if self._already_completed(moment):
            return {"video_url": moment.video_url, "skipped": True}
        await self._start(moment)

        work_dir = tempfile.mkdtemp(prefix=f"compress_{moment.id}_")
        try:
            input_path = os.path.join(work_dir, "original.mp4")
            output_path = os.path.join(work_dir, f"{moment.id}.mp4")

            video_data = await self.storage.download_bytes(job.video_url)
            async with aiofiles.open(input_path, "wb") as f:
                await f.write(video_data)
            await self._progress(moment, 25.0)

            result = await self.compressor.compress(input_path, output_path)
            await self._progress(moment, 75.0)
            video_url = await self.storage.save_file(
                f"{moment.id}.mp4", result["output_path"], folder_name=self.config.output_dir
            )
            await self.repository.update_video_url(moment.id, video_url)
            await self._complete(moment)

            result["video_url"] = video_url
            logger.info(
                f"Moment {moment.id} compressed: {result['original_size']} -> {result['compressed_size']} bytes"
            )
            return result
        except Exception as e:
            logger.error(f"Compression job for moment {moment.id} failed: {ErrorHandler.describe(e)}")
            await self._fail(moment, e)
            raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
