"""Job record and status state machine for the audio processing pipeline."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, FrozenSet, Optional

from voicebrief.models.schemas import Summary


class JobStatus(str, Enum):
    PENDING = "pending"          # created, upload not yet staged
    UPLOADED = "uploaded"        # audio staged, public URL known
    PROCESSING = "processing"    # ASR / summarization in progress
    COMPLETED = "completed"      # transcript and summary stored
    FAILED = "failed"            # error_message stored


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Forward-only; failed is reachable from every non-terminal state.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.UPLOADED, JobStatus.FAILED}),
    JobStatus.UPLOADED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(src: JobStatus, dst: JobStatus) -> bool:
    """Return True if a job in status src may move to dst.
    Why available: The job store checks this before every status write, which is what keeps terminal jobs from being overwritten by late or duplicate writes."""
    return dst in ALLOWED_TRANSITIONS[src]


@dataclass
class Job:
    """One voice note processing job: owner, status, staged audio URL, and the transcript/summary or error once processing ends.
    Why available: The record the orchestrator drives through the state machine and clients poll for progress."""

    job_id: str
    owner_id: str
    created_at: float
    updated_at: float
    status: JobStatus = JobStatus.PENDING
    original_filename: Optional[str] = None
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[Summary] = None
    error_message: Optional[str] = None
    duration_seconds: Optional[float] = None
    confidence: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def snapshot(self) -> "Job":
        """Copy handed out by the store so callers cannot mutate stored state."""
        return replace(
            self,
            summary=self.summary.model_copy(deep=True) if self.summary is not None else None,
        )
