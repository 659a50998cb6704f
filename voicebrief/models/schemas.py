from pydantic import BaseModel, Field
from typing import List, Optional


class Summary(BaseModel):
    """Structured summary of one recording (or of one chunk during the map step). Why available: Shared shape for the model output, the stored job result and the API payload."""

    title: str = Field("Untitled", description="Concise title (5-10 words)")
    summary: str = Field("", description="Prose summary")
    action_items: List[str] = Field(default_factory=list, description="Tasks, to-dos, follow-ups")
    key_points: List[str] = Field(default_factory=list, description="Important facts, decisions, ideas")


class UploadResponse(BaseModel):
    job_id: str
    status: str
    message: str = "Audio upload started"


class JobStatusResponse(BaseModel):
    """Response for GET /audio/jobs/{job_id}: status plus summary when completed or error when failed. Why available: Polling endpoint for clients waiting on the background pipeline."""

    job_id: str
    status: str
    original_filename: Optional[str] = None
    created_at: float
    updated_at: float
    summary: Optional[Summary] = None
    error: Optional[str] = None


class JobResultResponse(BaseModel):
    """Full result of a completed job, including the transcript."""

    job_id: str
    status: str
    original_filename: Optional[str] = None
    audio_url: Optional[str] = None
    transcript: str
    summary: Summary
    duration_seconds: Optional[float] = None
    confidence: Optional[float] = None
    created_at: float
    completed_at: float


class JobListItem(BaseModel):
    job_id: str
    status: str
    original_filename: Optional[str] = None
    created_at: float
    title: Optional[str] = None


class JobListResponse(BaseModel):
    jobs: List[JobListItem] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class DeleteJobResponse(BaseModel):
    job_id: str
    message: str = "Job deleted successfully"


class LimitsResponse(BaseModel):
    """Current pipeline and upload limits. Why available: Lets clients check upload size and chunking/retry settings before uploading."""

    max_upload_mb: int
    allowed_extensions: List[str]
    chunk_size: int
    summary_max_attempts: int
    summary_timeout_seconds: float
    transcription_timeout_seconds: float
    worker_count: int
