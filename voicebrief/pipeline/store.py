"""Job store: the only shared mutable state in the pipeline.

Every status write is conditional on the job's current status (see
jobs.can_transition), so a write that arrives after the job reached
`completed` or `failed` is refused instead of overwriting the result.
Write methods return the updated job, or None when the job does not exist or
the transition was refused. A JobStore backed by an external database raises
StoreUnavailable when it cannot apply a write; InMemoryJobStore never does.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from voicebrief.models.schemas import Summary
from .jobs import Job, JobStatus, can_transition

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    async def create(self, owner_id: str, original_filename: Optional[str] = None) -> Job: ...

    async def mark_uploaded(self, job_id: str, audio_url: str) -> Optional[Job]: ...

    async def mark_processing(self, job_id: str) -> Optional[Job]: ...

    async def mark_completed(
        self,
        job_id: str,
        transcript: str,
        summary: Summary,
        duration_seconds: Optional[float] = None,
        confidence: Optional[float] = None,
    ) -> Optional[Job]: ...

    async def mark_failed(self, job_id: str, reason: str) -> Optional[Job]: ...

    async def get(self, job_id: str, owner_id: str) -> Optional[Job]: ...

    async def list_for_owner(self, owner_id: str, page: int = 1, limit: int = 10) -> Tuple[List[Job], int]: ...

    async def delete(self, job_id: str, owner_id: str) -> Optional[Job]: ...


class InMemoryJobStore:
    """In-process JobStore (per process; lost on restart). Pipeline writes are keyed by job id only; the read path (get/list/delete) enforces ownership.
    Why available: Backs the API and the worker in a single-process deployment and in tests."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._jobs: Dict[str, Job] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _touch(self, job: Job) -> None:
        # updated_at is strictly increasing per job, even on a coarse clock
        now = self._clock()
        job.updated_at = now if now > job.updated_at else job.updated_at + 1e-6

    async def create(self, owner_id: str, original_filename: Optional[str] = None) -> Job:
        now = self._clock()
        job = Job(
            job_id=str(uuid.uuid4()),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            original_filename=original_filename,
        )
        async with self._lock:
            self._jobs[job.job_id] = job
        logger.info("job_created", extra={"job_id": job.job_id, "owner_id": owner_id})
        return job.snapshot()

    async def _transition(self, job_id: str, dst: JobStatus, **fields) -> Optional[Job]:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning("job_not_found", extra={"job_id": job_id, "target_status": dst.value})
                return None
            if not can_transition(job.status, dst):
                logger.warning(
                    "job_transition_refused",
                    extra={"job_id": job_id, "from_status": job.status.value, "target_status": dst.value},
                )
                return None
            for name, value in fields.items():
                setattr(job, name, value)
            job.status = dst
            self._touch(job)
            return job.snapshot()

    async def mark_uploaded(self, job_id: str, audio_url: str) -> Optional[Job]:
        return await self._transition(job_id, JobStatus.UPLOADED, audio_url=audio_url)

    async def mark_processing(self, job_id: str) -> Optional[Job]:
        return await self._transition(job_id, JobStatus.PROCESSING)

    async def mark_completed(
        self,
        job_id: str,
        transcript: str,
        summary: Summary,
        duration_seconds: Optional[float] = None,
        confidence: Optional[float] = None,
    ) -> Optional[Job]:
        return await self._transition(
            job_id,
            JobStatus.COMPLETED,
            transcript=transcript,
            summary=summary.model_copy(deep=True),
            duration_seconds=duration_seconds,
            confidence=confidence,
        )

    async def mark_failed(self, job_id: str, reason: str) -> Optional[Job]:
        return await self._transition(job_id, JobStatus.FAILED, error_message=reason)

    async def get(self, job_id: str, owner_id: str) -> Optional[Job]:
        """Return the job if it exists and belongs to owner_id, else None (foreign jobs look missing)."""
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.owner_id != owner_id:
                return None
            return job.snapshot()

    async def list_for_owner(self, owner_id: str, page: int = 1, limit: int = 10) -> Tuple[List[Job], int]:
        """Return (jobs on the requested page, total) for owner_id, newest first."""
        page = max(1, page)
        limit = max(1, limit)
        async with self._lock:
            owned = [j for j in self._jobs.values() if j.owner_id == owner_id]
        owned.sort(key=lambda j: j.created_at, reverse=True)
        start = (page - 1) * limit
        return [j.snapshot() for j in owned[start : start + limit]], len(owned)

    async def delete(self, job_id: str, owner_id: str) -> Optional[Job]:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.owner_id != owner_id:
                return None
            del self._jobs[job_id]
        logger.info("job_deleted", extra={"job_id": job_id, "owner_id": owner_id})
        return job
