"""Drives one job end-to-end: processing -> ASR -> summarization -> completed.

Any failure after the job entered `processing` becomes a single `failed`
write carrying the exception message. run() never raises to its caller
(cancellation excepted, which is re-raised after the job is marked failed).
"""
import asyncio
import logging
import time

from voicebrief.core.config import Settings
from voicebrief.core.errors import EmptyTranscriptError, TranscriptionError
from voicebrief.core.interfaces import TranscriptionClient, TranscriptionResult
from voicebrief.extract.summarizer import Summarizer
from .store import JobStore

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Processing failed"
CANCELLED_MESSAGE = "Processing cancelled"


def failure_reason(exc: BaseException) -> str:
    """Human-readable job error for an exception: its message, or a generic one when it has none."""
    return str(exc).strip() or GENERIC_FAILURE_MESSAGE


class PipelineOrchestrator:
    """Runs the transcription + summarization pipeline for one job at a time and records the outcome in the job store.
    Why available: Single owner of a job's status once processing starts, so status transitions for a job are strictly ordered."""

    def __init__(
        self,
        store: JobStore,
        transcriber: TranscriptionClient,
        summarizer: Summarizer,
        *,
        transcription_timeout_seconds: float = 900.0,
    ):
        self.store = store
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.transcription_timeout_seconds = transcription_timeout_seconds

    @classmethod
    def from_settings(
        cls,
        store: JobStore,
        transcriber: TranscriptionClient,
        summarizer: Summarizer,
        settings: Settings,
    ) -> "PipelineOrchestrator":
        return cls(
            store,
            transcriber,
            summarizer,
            transcription_timeout_seconds=settings.transcription_timeout_seconds,
        )

    async def _transcribe(self, audio_url: str) -> TranscriptionResult:
        try:
            result = await asyncio.wait_for(
                self.transcriber.transcribe(audio_url),
                timeout=self.transcription_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TranscriptionError(
                f"Transcription timed out after {self.transcription_timeout_seconds:g}s"
            ) from e
        if not result.text or not result.text.strip():
            raise EmptyTranscriptError()
        return result

    async def fail(self, job_id: str, reason: str) -> None:
        """Write `failed` for a job. A failing or refused write is logged only; there is no further recourse."""
        try:
            job = await self.store.mark_failed(job_id, reason)
        except Exception:
            logger.exception("job_fail_write_failed", extra={"job_id": job_id, "reason": reason})
            return
        if job is None:
            logger.warning("job_fail_write_not_applied", extra={"job_id": job_id, "reason": reason})

    async def run(self, job_id: str, audio_url: str) -> None:
        started = time.perf_counter()
        logger.info("pipeline_started", extra={"job_id": job_id})

        try:
            job = await self.store.mark_processing(job_id)
        except Exception:
            # nothing to report against if the store cannot take the first write
            logger.exception("pipeline_start_write_failed", extra={"job_id": job_id})
            return
        if job is None:
            logger.warning("pipeline_aborted", extra={"job_id": job_id})
            return

        try:
            result = await self._transcribe(audio_url)
            logger.info(
                "pipeline_transcribed",
                extra={
                    "job_id": job_id,
                    "chars": len(result.text),
                    "duration_seconds": result.duration_seconds,
                    "confidence": result.confidence,
                },
            )

            summary = await self.summarizer.summarize(result.text)
            logger.info(
                "pipeline_summarized",
                extra={
                    "job_id": job_id,
                    "title": summary.title,
                    "action_items": len(summary.action_items),
                    "key_points": len(summary.key_points),
                },
            )

            completed = await self.store.mark_completed(
                job_id,
                result.text,
                summary,
                duration_seconds=result.duration_seconds,
                confidence=result.confidence,
            )
        except asyncio.CancelledError:
            logger.warning("pipeline_cancelled", extra={"job_id": job_id})
            await self.fail(job_id, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            logger.error(
                "pipeline_failed",
                exc_info=True,
                extra={"job_id": job_id, "error": failure_reason(e)},
            )
            await self.fail(job_id, failure_reason(e))
            return

        latency_ms = (time.perf_counter() - started) * 1000.0
        if completed is None:
            logger.warning("pipeline_result_not_applied", extra={"job_id": job_id, "latency_ms": round(latency_ms, 2)})
            return
        logger.info("pipeline_completed", extra={"job_id": job_id, "latency_ms": round(latency_ms, 2)})
