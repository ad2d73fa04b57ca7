from .jobs import CompressionJob, EmbeddingJob, JobPriority, JobRecord, JobStatus, next_occurrence, parse_time_of_day
from .base_queue import JobQueue
from .compression_queue import VideoCompressionQueue
from .embeddings_queue import EmbeddingsQueue
from .workers import EmbeddingsWorker, VideoCompressionWorker

__all__ = [
    "CompressionJob",
    "EmbeddingJob",
    "EmbeddingsQueue",
    "EmbeddingsWorker",
    "JobPriority",
    "JobQueue",
    "JobRecord",
    "JobStatus",
    "VideoCompressionQueue",
    "VideoCompressionWorker",
    "next_occurrence",
    "parse_time_of_day",
]
