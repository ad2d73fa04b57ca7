"""
Wiring for a process that ingests moments and runs the background jobs.

Example:
    >>> from mfuse.pipeline import MomentPipeline
    >>>
    >>> async def serve(repository):
    >>>     pipeline = MomentPipeline(repository)
    >>>     pipeline.start()
    >>>     moment = await pipeline.ingestion.create_moment(
    >>>         Moment(owner_id="u1", video_url="raw/clip.mp4", description="Sunset ride", hashtags=["surf"])
    >>>     )
    >>>     ...
    >>>     await pipeline.shutdown()
"""

from typing import Annotated, Optional

from loguru import logger

from mfuse.config.settings import MFuseConfig
from mfuse.embedding_pipeline.core.fusion import ContentEmbeddingGenerator
from mfuse.embedding_pipeline.core.models import ContentEmbeddingRequest, VideoMetadata
from mfuse.exceptions import ConfigurationException
from mfuse.moments.engagement_service import EngagementService
from mfuse.moments.ingestion_service import MomentIngestionService
from mfuse.moments.repository import MomentRepository
from mfuse.providers.factory import ProviderFactory
from mfuse.queue.compression_queue import VideoCompressionQueue
from mfuse.queue.embeddings_queue import EmbeddingsQueue
from mfuse.queue.workers import EmbeddingsWorker, VideoCompressionWorker
from mfuse.utils.logging_config import log_manager


class MomentPipeline:
    """Builds providers, queues, workers and services from ``MFuseConfig``."""

    def __init__(
        self,
        repository: Annotated[MomentRepository, "Persistence backend for moments"],
        config: Annotated[Optional[MFuseConfig], "Application config; loaded from the environment when omitted"] = None,
        generator: Annotated[Optional[ContentEmbeddingGenerator], "Prebuilt fusion engine"] = None,
        disable_console_log: Annotated[bool, "Boolean flag to disable console logs"] = False,
    ):
        try:
            self.config = config or MFuseConfig()
        except Exception as e:
            logger.exception(f"Exception occurred while loading the mfuse config: {e}")
            raise ConfigurationException(f"Exception occurred while loading the mfuse config: {e}") from e

        if disable_console_log:
            log_manager.disable_console()
        else:
            log_manager.enable_console()
        log_manager.configure(self.config.logging)

        self.repository = repository
        self.storage = ProviderFactory.create_storage_provider(self.config.storage)
        self.compressor = ProviderFactory.create_video_compressor(self.config.compression)
        self.generator = generator or ContentEmbeddingGenerator(self.config.models)

        self.compression_queue = VideoCompressionQueue(
            self.config.queue,
            handler=VideoCompressionWorker(repository, self.storage, self.compressor, self.config.compression),
        )
        self.embeddings_queue = EmbeddingsQueue(
            self.config.queue,
            handler=EmbeddingsWorker(repository, self.storage, self.generator),
        )
        self.ingestion = MomentIngestionService(repository, self.compression_queue, self.embeddings_queue,
                                                self.config.queue)
        self.engagement = EngagementService(repository)

    def start(self):
        self.compression_queue.start()
        self.embeddings_queue.start()
        logger.info(f"{self.config.app_name} {self.config.app_version} pipeline started")

    async def shutdown(self, timeout: float = 30.0):
        await self.compression_queue.close()
        await self.embeddings_queue.close()
        await self.generator.wait_for_background(timeout)
        await self.generator.close()
        await self.storage.close()
        logger.info("Pipeline stopped")


async def embed_video_file(video_path: str, description: str = "", hashtags=None,
                           config: Optional[MFuseConfig] = None):
    """Run the fusion engine once over a local file, outside the queues."""
    config = config or MFuseConfig()
    storage = ProviderFactory.create_storage_provider(config.storage)
    generator = ContentEmbeddingGenerator(config.models)
    try:
        video_data = await storage.download_bytes(video_path)
        request = ContentEmbeddingRequest(
            video_data=video_data,
            description=description,
            hashtags=list(hashtags or []),
            video_metadata=VideoMetadata(),
        )
        return await generator.generate(request)
    finally:
        await generator.wait_for_background(5.0)
        await generator.close()
        await storage.close()


if __name__ == "__main__":
    import argparse
    import asyncio
    import json

    parser = argparse.ArgumentParser(description="Generate the fused content embedding of a video file")
    parser.add_argument("video_path", help="Path to the video file")
    parser.add_argument("-d", "--description", default="", help="Moment description")
    parser.add_argument("-t", "--hashtag", action="append", default=[], help="Hashtag (repeatable)")
    parser.add_argument("--mock", action="store_true", default=False,
                        help="Use the mock profile (text only, no CLIP or Whisper)")

    args = parser.parse_args()

    app_config = MFuseConfig()
    if args.mock:
        app_config._models = app_config.models.mock()
    log_manager.enable_console()
    log_manager.configure(app_config.logging)

    outcome = asyncio.run(embed_video_file(args.video_path, args.description, args.hashtag, app_config))
    if outcome.is_success:
        embedding = outcome.value
        print(json.dumps({
            "dimension": embedding.dimension,
            "fallback": embedding.metadata.fallback,
            "components": embedding.metadata.components.model_dump(exclude_none=True),
        }, indent=2))
    else:
        print(f"Embedding failed [{outcome.error_code}]: {outcome.reason}")
