"""
Brainprep Queue Manager

In-process async job queue for deferred preparation.

Features:
- Worker pool of asyncio tasks with configurable concurrency
- Bounded attempts with exponential backoff between them
- Terminal FAILED status carrying the last error; failures never reach the enqueuer
- Retention of the most recent completed and failed jobs
"""

import asyncio
import time
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from brainprep.core.config import QueueConfig
from brainprep.core.constants import KEEP_COMPLETED_JOBS, KEEP_FAILED_JOBS, QUEUE_NAME
from brainprep.core.exceptions import JobNotFoundError, QueueError
from brainprep.core.logging_config import get_logger
from brainprep.core.retry import RetryConfig, calculate_delay

logger = get_logger("queue.manager")


class JobStatus(Enum):
    """Status of a queued job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class QueueJob:
    """A job in the queue."""
    id: str
    name: str
    payload: Dict[str, Any]
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status.value,
            'attempts': self.attempts,
            'result': self.result,
            'error': self.error,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


JobProcessor = Callable[[QueueJob], Awaitable[Any]]


class QueueManager:
    """
    Async job queue with a local worker pool.

    `max_retries` from QueueConfig is the total number of attempts a job gets.
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        keep_completed: int = KEEP_COMPLETED_JOBS,
        keep_failed: int = KEEP_FAILED_JOBS,
        name: str = QUEUE_NAME,
    ):
        self.config = config or QueueConfig()
        self.name = name
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.retry_config = RetryConfig(
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_delay,
            jitter=False,
        )

        self._pending: asyncio.Queue = asyncio.Queue()
        self._jobs: "OrderedDict[str, QueueJob]" = OrderedDict()
        self._done_events: Dict[str, asyncio.Event] = {}
        self._completed_ids: Deque[str] = deque()
        self._failed_ids: Deque[str] = deque()
        self._workers: List[asyncio.Task] = []
        self._processor: Optional[JobProcessor] = None
        self._active: Dict[str, QueueJob] = {}

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    async def add(self, job_name: str, payload: Dict[str, Any]) -> str:
        """Enqueue a job; returns its id. Jobs wait until a worker is started."""
        job_id = f"{job_name}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        job = QueueJob(
            id=job_id,
            name=job_name,
            payload=payload,
            max_attempts=max(1, self.config.max_retries),
        )
        self._jobs[job_id] = job
        self._done_events[job_id] = asyncio.Event()
        await self._pending.put(job_id)
        logger.info(f"Job added: {job_id}")
        return job_id

    def get_job(self, job_id: str) -> Optional[QueueJob]:
        return self._jobs.get(job_id)

    async def wait_for(self, job_id: str, timeout: Optional[float] = None) -> QueueJob:
        """Wait until a job reaches COMPLETED or FAILED."""
        job = self._jobs.get(job_id)
        event = self._done_events.get(job_id)
        if job is None or event is None:
            raise JobNotFoundError(job_id)
        if not job.status.is_terminal:
            await asyncio.wait_for(event.wait(), timeout)
        return job

    # =========================================================================
    # WORKERS
    # =========================================================================

    def start_worker(self, processor: JobProcessor) -> None:
        """Start `concurrency` workers. Must be called from a running event loop."""
        if self._workers:
            logger.info("Worker already running")
            return

        self._processor = processor
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"{self.name}-worker-{i}")
            for i in range(self.config.concurrency)
        ]
        logger.info(f"Worker started with concurrency: {self.config.concurrency}")

    async def stop_worker(self) -> None:
        """Cancel workers. Jobs cut off mid-run go back to the queue."""
        if not self._workers:
            return

        workers, self._workers = self._workers, []
        # _run drops jobs from _active as its task unwinds
        interrupted = list(self._active.values())
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        for job in interrupted:
            if job.status.is_terminal:
                continue
            job.status = JobStatus.PENDING
            job.attempts = max(0, job.attempts - 1)
            job.updated_at = datetime.now()
            self._pending.put_nowait(job.id)
            logger.info(f"Job requeued: {job.id}")
        self._active.clear()
        logger.info("Worker stopped")

    async def close(self) -> None:
        await self.stop_worker()
        logger.info("Queue closed")

    async def _worker_loop(self, worker_index: int) -> None:
        while True:
            job_id = await self._pending.get()
            try:
                job = self._jobs.get(job_id)
                if job is not None and job.status == JobStatus.PENDING:
                    await self._run(job)
            finally:
                self._pending.task_done()

    async def _run(self, job: QueueJob) -> None:
        if self._processor is None:
            raise QueueError("No processor registered")

        self._active[job.id] = job
        try:
            while True:
                job.status = JobStatus.PROCESSING
                job.attempts += 1
                job.updated_at = datetime.now()
                try:
                    job.result = await self._processor(job)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    job.error = f"{type(e).__name__}: {e}"
                    if job.can_retry:
                        delay = calculate_delay(job.attempts - 1, self.retry_config)
                        logger.warning(
                            f"Job {job.id} attempt {job.attempts}/{job.max_attempts} failed: {e}. "
                            f"Retrying in {delay:.2f}s..."
                        )
                        await asyncio.sleep(delay)
                        continue
                    self._finish(job, JobStatus.FAILED)
                    logger.error(f"Job failed: {job.id} after {job.attempts} attempts: {e}")
                    return

                job.error = None
                self._finish(job, JobStatus.COMPLETED)
                logger.info(f"Job completed: {job.id}")
                return
        finally:
            self._active.pop(job.id, None)

    def _finish(self, job: QueueJob, status: JobStatus) -> None:
        job.status = status
        job.updated_at = datetime.now()

        if status == JobStatus.COMPLETED:
            self._retain(job.id, self._completed_ids, self.keep_completed)
        else:
            self._retain(job.id, self._failed_ids, self.keep_failed)

        event = self._done_events.get(job.id)
        if event is not None:
            event.set()

    def _retain(self, job_id: str, ids: Deque[str], limit: int) -> None:
        ids.append(job_id)
        while len(ids) > limit:
            expired = ids.popleft()
            self._jobs.pop(expired, None)
            self._done_events.pop(expired, None)

    def get_stats(self) -> Dict[str, int]:
        stats = {status.value: 0 for status in JobStatus}
        for job in self._jobs.values():
            stats[job.status.value] += 1
        return stats
