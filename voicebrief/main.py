import os
import asyncio
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    Header,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.staticfiles import StaticFiles

from voicebrief.asr.assemblyai import AssemblyAITranscriber
from voicebrief.core.config import Settings, settings
from voicebrief.core.interfaces import UploadStager
from voicebrief.core.openai_client import OpenAISummaryClient
from voicebrief.extract.summarizer import Summarizer
from voicebrief.guardrails.errors import as_http_500
from voicebrief.models.schemas import (
    DeleteJobResponse,
    JobListItem,
    JobListResponse,
    JobResultResponse,
    JobStatusResponse,
    LimitsResponse,
    UploadResponse,
)
from voicebrief.observability.logging_setup import configure_logging
from voicebrief.observability.middleware import RequestTimingMiddleware, get_request_id
from voicebrief.pipeline.jobs import Job, JobStatus
from voicebrief.pipeline.orchestrator import PipelineOrchestrator
from voicebrief.pipeline.staging import LocalUploadStager, stage_and_submit
from voicebrief.pipeline.store import InMemoryJobStore, JobStore
from voicebrief.pipeline.worker import JobRunner

logger = logging.getLogger(__name__)


# -------------------------
# Upload validation
# -------------------------

ALLOWED_MIME_TYPES = (
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/wave",
    "audio/x-wav",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
    "audio/webm",
    "audio/ogg",
    "audio/opus",
    "video/webm",  # some browsers label recordings as video
)
ALLOWED_EXTENSIONS = (".mp3", ".wav", ".m4a", ".webm", ".ogg", ".mp4", ".opus")


def is_allowed_audio(content_type: Optional[str], filename: Optional[str]) -> bool:
    """Accept a file when its MIME type OR its extension is on the allow-list.
    Why available: First check in /audio/upload; the size cap is enforced separately on the received bytes."""
    mime_ok = (content_type or "").split(";")[0].strip().lower() in ALLOWED_MIME_TYPES
    ext_ok = os.path.splitext(filename or "")[1].lower() in ALLOWED_EXTENSIONS
    return mime_ok or ext_ok


# -------------------------
# Service wiring
# -------------------------

@dataclass
class Services:
    """Everything the routes need, built once per app. Tests pass their own with fake clients."""

    store: JobStore
    stager: UploadStager
    runner: JobRunner
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)


def build_services(cfg: Settings) -> Services:
    """Construct the production pipeline: AssemblyAI transcriber, OpenAI-compatible summarizer, in-memory store, local stager and the worker pool.
    Why available: Single place where concrete clients are created and injected, replacing per-module client singletons."""
    transcriber = AssemblyAITranscriber.from_settings(cfg)
    summary_client = OpenAISummaryClient.from_settings(cfg)
    summarizer = Summarizer.from_settings(summary_client, cfg)
    store = InMemoryJobStore()
    orchestrator = PipelineOrchestrator.from_settings(store, transcriber, summarizer, cfg)
    return Services(
        store=store,
        stager=LocalUploadStager.from_settings(cfg),
        runner=JobRunner(orchestrator, worker_count=cfg.worker_count),
        closers=[transcriber.close, summary_client.close],
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_owner_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity from the X-User-Id header. Credential checks happen upstream of this service."""
    if not (x_user_id or "").strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


router = APIRouter()


# -------------------------
# Root / health / limits
# -------------------------

@router.get("/")
def root():
    """Returns a minimal welcome payload with app name and docs URL."""
    return {"app": "VoiceBrief", "docs": "/docs"}


@router.get("/health")
def health(request: Request):
    """Returns 200 OK with status and whether the background worker is running.
    Why available: Standard endpoint for uptime checks and orchestration."""
    runner = get_services(request).runner
    return {"status": "ok", "worker_running": runner.running}


@router.get("/limits", response_model=LimitsResponse)
def limits(cfg: Settings = Depends(get_settings)):
    """Returns current upload and pipeline limits (max upload size, allowed extensions, chunk size, retry budget, timeouts)."""
    return LimitsResponse(
        max_upload_mb=cfg.max_upload_mb,
        allowed_extensions=list(ALLOWED_EXTENSIONS),
        chunk_size=cfg.chunk_size,
        summary_max_attempts=cfg.summary_max_attempts,
        summary_timeout_seconds=cfg.summary_timeout_seconds,
        transcription_timeout_seconds=cfg.transcription_timeout_seconds,
        worker_count=cfg.worker_count,
    )


# -------------------------
# Upload
# -------------------------

def _write_temp_upload(upload_root: str, name: str, content: bytes) -> str:
    os.makedirs(upload_root, exist_ok=True)
    path = os.path.join(upload_root, name)
    with open(path, "wb") as out:
        out.write(content)
    return path


@router.post("/audio/upload", response_model=UploadResponse, status_code=201)
async def upload_audio(
    request: Request,
    background_tasks: BackgroundTasks,
    audio: Optional[UploadFile] = File(None),
    owner_id: str = Depends(get_owner_id),
):
    """Accepts an audio file, creates a `pending` job and returns its id immediately. Staging and the ASR/summary pipeline run in the background; clients poll GET /audio/jobs/{job_id}.
    Why available: Entry point of the pipeline; the response never waits on storage, ASR or the model."""
    svc = get_services(request)
    cfg = get_settings(request)

    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")
    if not is_allowed_audio(audio.content_type, audio.filename):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type. Allowed types: {', '.join(ALLOWED_EXTENSIONS)}",
        )

    content = await audio.read()
    if len(content) > cfg.max_upload_mb * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"{audio.filename} exceeds {cfg.max_upload_mb} MB limit.",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Audio file is empty")

    original_filename = audio.filename or "recording"
    job = await svc.store.create(owner_id, original_filename)

    ext = os.path.splitext(original_filename)[1].lower()
    try:
        temp_path = await asyncio.to_thread(_write_temp_upload, cfg.upload_root, f"{job.job_id}{ext}", content)
    except OSError as e:
        await svc.runner.orchestrator.fail(job.job_id, "Upload could not be saved")
        raise as_http_500(e, get_request_id(request))

    logger.info(
        "upload_received",
        extra={
            "job_id": job.job_id,
            "original_filename": original_filename,
            "content_type": audio.content_type,
            "size_mb": round(len(content) / 1024 / 1024, 2),
        },
    )

    background_tasks.add_task(
        stage_and_submit,
        job.job_id,
        temp_path,
        original_filename,
        stager=svc.stager,
        store=svc.store,
        runner=svc.runner,
    )
    return UploadResponse(job_id=job.job_id, status=job.status.value)


# -------------------------
# Jobs (read path, owner-scoped)
# -------------------------

async def _owned_job(svc: Services, job_id: str, owner_id: str) -> Job:
    job = await svc.store.get(job_id, owner_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/audio/jobs", response_model=JobListResponse)
async def list_jobs(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    owner_id: str = Depends(get_owner_id),
):
    """Lists the caller's jobs, newest first, without transcripts."""
    jobs, total = await get_services(request).store.list_for_owner(owner_id, page=page, limit=limit)
    return JobListResponse(
        jobs=[
            JobListItem(
                job_id=j.job_id,
                status=j.status.value,
                original_filename=j.original_filename,
                created_at=j.created_at,
                title=j.summary.title if j.summary else None,
            )
            for j in jobs
        ],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
    )


@router.get("/audio/jobs/{job_id}", response_model=JobStatusResponse)
async def job_status(job_id: str, request: Request, owner_id: str = Depends(get_owner_id)):
    """Returns a job's status (pending / uploaded / processing / completed / failed), with the summary once completed or the error once failed.
    Why available: Polling endpoint; the status and error fields are the only failure signal the pipeline exposes."""
    job = await _owned_job(get_services(request), job_id, owner_id)
    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status.value,
        original_filename=job.original_filename,
        created_at=job.created_at,
        updated_at=job.updated_at,
        summary=job.summary if job.status == JobStatus.COMPLETED else None,
        error=job.error_message if job.status == JobStatus.FAILED else None,
    )


@router.get("/audio/jobs/{job_id}/result", response_model=JobResultResponse)
async def job_result(job_id: str, request: Request, owner_id: str = Depends(get_owner_id)):
    """Returns the full result (transcript + summary) of a completed job; 409 while the job is still running or after it failed."""
    job = await _owned_job(get_services(request), job_id, owner_id)
    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail=f"Job is not completed. Current status: {job.status.value}",
        )
    return JobResultResponse(
        job_id=job.job_id,
        status=job.status.value,
        original_filename=job.original_filename,
        audio_url=job.audio_url,
        transcript=job.transcript or "",
        summary=job.summary,
        duration_seconds=job.duration_seconds,
        confidence=job.confidence,
        created_at=job.created_at,
        completed_at=job.updated_at,
    )


@router.delete("/audio/jobs/{job_id}", response_model=DeleteJobResponse)
async def delete_job(job_id: str, request: Request, owner_id: str = Depends(get_owner_id)):
    """Deletes a job record and its staged audio. A job deleted mid-pipeline simply has its later writes refused."""
    svc = get_services(request)
    job = await svc.store.delete(job_id, owner_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.audio_url:
        await svc.stager.discard(job_id)
    return DeleteJobResponse(job_id=job_id)


# -------------------------
# App setup
# -------------------------

def create_app(cfg: Settings = settings, services: Optional[Services] = None) -> FastAPI:
    """Build the FastAPI app. The worker pool starts and stops with the app lifespan; `services` overrides the production wiring (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(cfg.log_level)
        os.makedirs(cfg.media_root, exist_ok=True)
        svc = services or build_services(cfg)
        app.state.services = svc
        svc.runner.start()
        try:
            yield
        finally:
            await svc.runner.stop()
            for close in svc.closers:
                await close()

    app = FastAPI(title="VoiceBrief", lifespan=lifespan)
    app.state.settings = cfg
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(router)
    app.mount("/media", StaticFiles(directory=cfg.media_root, check_dir=False), name="media")
    return app


app = create_app()
