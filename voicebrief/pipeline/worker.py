"""In-process background worker for pipeline jobs.

Uploads hand (job_id, audio_url) to JobRunner.submit(), which only enqueues;
a fixed set of worker tasks drains the queue and runs the orchestrator.
Workers are supervised: anything that escapes a run is funneled into the same
mark-failed path, and the worker keeps serving the queue.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from .orchestrator import PipelineOrchestrator, failure_reason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItem:
    job_id: str
    audio_url: str


class JobRunner:
    """Queue + supervised worker tasks for PipelineOrchestrator.run. Not persisted: queued work is lost on restart.
    Why available: Decouples the request that completes an upload from the pipeline, so HTTP handlers never wait on ASR or the model."""

    def __init__(self, orchestrator: PipelineOrchestrator, worker_count: int = 2):
        if worker_count <= 0:
            raise ValueError("worker_count must be > 0")
        self.orchestrator = orchestrator
        self.worker_count = worker_count
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start worker tasks on the running event loop. Idempotent."""
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"voicebrief-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info("job_runner_started", extra={"worker_count": self.worker_count})

    def submit(self, job_id: str, audio_url: str) -> None:
        """Enqueue a job for processing. Never blocks; raises RuntimeError if the runner was not started."""
        if self._queue is None:
            raise RuntimeError("JobRunner is not started")
        self._queue.put_nowait(WorkItem(job_id=job_id, audio_url=audio_url))
        logger.info("job_submitted", extra={"job_id": job_id, "queued": self._queue.qsize()})

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel worker tasks. Jobs still queued stay in `uploaded`; a job mid-run is marked failed by the orchestrator."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._queue = None
        if workers:
            logger.info("job_runner_stopped", extra={"worker_count": len(workers)})

    async def _run_supervised(self, item: WorkItem) -> None:
        try:
            await self.orchestrator.run(item.job_id, item.audio_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("job_run_crashed", extra={"job_id": item.job_id})
            await self.orchestrator.fail(item.job_id, failure_reason(e))

    async def _worker(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            item = await queue.get()
            try:
                await self._run_supervised(item)
            finally:
                queue.task_done()
