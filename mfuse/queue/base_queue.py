"""
In-process job queue with priorities, delayed dispatch and a worker pool.

Jobs are ordered by ``(priority, sequence)`` so lower priority values win
and equal priorities keep FIFO order. A delayed job sits in a timer task
until its dispatch instant and only then joins the priority queue, which
guarantees it never runs early.
"""

import asyncio
import itertools
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from mfuse.exceptions import QueueSchedulingError
from mfuse.queue.jobs import JobPriority, JobRecord, JobStatus
from mfuse.utils.error_handler import ErrorHandler
from mfuse.utils.execution_timer import ExecutionTimer

JobHandler = Callable[[Any], Awaitable[Any]]

# Failed jobs are kept this many times longer than completed ones
FAILED_GRACE_MULTIPLIER = 7


class JobQueue:
    job_prefix = "job"

    def __init__(
        self,
        name: str,
        handler: Optional[JobHandler] = None,
        concurrency: int = 1,
        clean_grace_seconds: float = 86400.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.name = name
        self.handler = handler
        self.concurrency = concurrency
        self.clean_grace_seconds = clean_grace_seconds
        self._now = clock or datetime.now
        self._queue: asyncio.PriorityQueue = asyncio.PriorityQueue()
        self._records: Dict[str, JobRecord] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._sequence = itertools.count()
        self._workers: List[asyncio.Task] = []
        self._closed = False

    def job_id_for(self, moment_id: str) -> str:
        return f"{self.job_prefix}-{moment_id}"

    # ------------------------------------------------------------------
    # Producing
    # ------------------------------------------------------------------
    def _register(self, job: Any, priority: JobPriority, status: JobStatus,
                  dispatch_at: Optional[datetime] = None) -> JobRecord:
        if self._closed:
            raise QueueSchedulingError(f"Queue {self.name} is closed")

        job_id = job.job_id
        existing = self._records.get(job_id)
        if existing is not None and not existing.status.is_finished:
            raise QueueSchedulingError(
                f"Job {job_id} is already {existing.status.value} in {self.name}",
                details={"job_id": job_id, "status": existing.status.value},
            )

        record = JobRecord(
            job_id=job_id,
            job=job,
            priority=JobPriority(priority),
            sequence=next(self._sequence),
            status=status,
            enqueued_at=self._now(),
            dispatch_at=dispatch_at,
        )
        self._records[job_id] = record
        return record

    def _push(self, record: JobRecord):
        record.status = JobStatus.WAITING
        self._queue.put_nowait((int(record.priority), record.sequence, record.job_id))

    async def enqueue(self, job: Any, priority: Optional[JobPriority] = None) -> JobRecord:
        """Queue ``job`` for dispatch as soon as a worker is free."""
        priority = priority if priority is not None else job.priority
        record = self._register(job, priority, JobStatus.WAITING)
        self._push(record)
        logger.info(f"[{self.name}] Enqueued {record.job_id} (priority={record.priority.name})")
        return record

    async def enqueue_at(self, job: Any, dispatch_at: datetime, priority: Optional[JobPriority] = None) -> JobRecord:
        """Queue ``job`` so that it is dispatched no earlier than ``dispatch_at``."""
        priority = priority if priority is not None else job.priority
        record = self._register(job, priority, JobStatus.DELAYED, dispatch_at=dispatch_at)
        self._timers[record.job_id] = asyncio.ensure_future(self._release_at(record))
        logger.info(f"[{self.name}] Scheduled {record.job_id} for {dispatch_at.isoformat()}")
        return record

    async def _release_at(self, record: JobRecord):
        try:
            while True:
                remaining = (record.dispatch_at - self._now()).total_seconds()
                if remaining <= 0:
                    break
                await asyncio.sleep(remaining)
            if self._records.get(record.job_id) is record and record.status == JobStatus.DELAYED:
                self._push(record)
                logger.debug(f"[{self.name}] {record.job_id} is due")
        finally:
            self._timers.pop(record.job_id, None)

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------
    def start(self, handler: Optional[JobHandler] = None, concurrency: Optional[int] = None):
        """Start the worker pool; ``handler`` is awaited once per job."""
        if handler is not None:
            self.handler = handler
        if self.handler is None:
            raise QueueSchedulingError(f"Queue {self.name} has no job handler")
        if self._workers:
            return
        self.concurrency = concurrency or self.concurrency
        self._workers = [asyncio.ensure_future(self._worker(i)) for i in range(self.concurrency)]
        logger.info(f"[{self.name}] Started {self.concurrency} workers")

    async def _worker(self, worker_id: int):
        while True:
            _, _, job_id = await self._queue.get()
            try:
                record = self._records.get(job_id)
                if record is None or record.status != JobStatus.WAITING:
                    continue
                await self._run(record, worker_id)
            finally:
                self._queue.task_done()

    async def _run(self, record: JobRecord, worker_id: int):
        record.status = JobStatus.ACTIVE
        record.started_at = self._now()
        record.attempts += 1
        record.worker_id = worker_id
        logger.info(f"[{self.name}] Worker {worker_id} processing {record.job_id}")

        with ExecutionTimer() as timer:
            try:
                record.result = await self.handler(record.job)
                record.status = JobStatus.COMPLETED
                logger.info(f"[{self.name}] Completed {record.job_id} in {timer.elapsed_ms():.0f}ms")
            except Exception as e:
                record.status = JobStatus.FAILED
                record.error = ErrorHandler.describe(e)
                logger.error(f"[{self.name}] Job {record.job_id} failed: {record.error}")
            finally:
                record.finished_at = self._now()

    async def join(self):
        """Wait until every waiting job has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Inspection and housekeeping
    # ------------------------------------------------------------------
    async def get_job(self, moment_id: str) -> Optional[JobRecord]:
        return self._records.get(self.job_id_for(moment_id))

    async def remove_job(self, moment_id: str) -> bool:
        """Drop a waiting, delayed or finished job. Active jobs cannot be removed."""
        job_id = self.job_id_for(moment_id)
        record = self._records.get(job_id)
        if record is None:
            return False
        if record.status == JobStatus.ACTIVE:
            logger.warning(f"[{self.name}] Cannot remove active job {job_id}")
            return False

        timer = self._timers.pop(job_id, None)
        if timer is not None:
            timer.cancel()
        del self._records[job_id]
        logger.info(f"[{self.name}] Removed {job_id}")
        return True

    async def get_stats(self) -> Dict[str, int]:
        stats = {status.value: 0 for status in JobStatus}
        for record in self._records.values():
            stats[record.status.value] += 1
        stats["total"] = sum(stats.values())
        return stats

    async def clean(self, grace_seconds: Optional[float] = None) -> int:
        """Forget completed jobs older than the grace period and failed jobs older than seven times it."""
        grace = timedelta(seconds=grace_seconds if grace_seconds is not None else self.clean_grace_seconds)
        now = self._now()
        limits = {JobStatus.COMPLETED: grace, JobStatus.FAILED: grace * FAILED_GRACE_MULTIPLIER}

        stale = [
            job_id for job_id, record in self._records.items()
            if record.status in limits and record.finished_at is not None
            and now - record.finished_at > limits[record.status]
        ]
        for job_id in stale:
            del self._records[job_id]
        logger.info(f"[{self.name}] Cleaned {len(stale)} finished jobs")
        return len(stale)

    async def close(self):
        """Stop timers and workers. Pending jobs are dropped."""
        self._closed = True
        pending = list(self._timers.values()) + self._workers
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._timers.clear()
        self._workers = []
        logger.info(f"[{self.name}] Queue closed")
