"""Collaborator contracts consumed by the pipeline.

Concrete bindings live in voicebrief.asr, voicebrief.core.openai_client and
voicebrief.pipeline.staging; tests substitute in-process fakes.
"""
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class TranscriptionResult:
    """Output of one ASR call: full text plus provider-reported confidence (0-1) and audio duration."""

    text: str
    confidence: Optional[float] = None
    duration_seconds: Optional[float] = None
    transcript_id: Optional[str] = None


class TranscriptionClient(Protocol):
    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        """Transcribe the audio at a public URL. Raises TranscriptionError (EmptyTranscriptError on blank text)."""
        ...


class SummaryClient(Protocol):
    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """Return raw model text for a prompt. Raises ProviderError on transport or quota failure."""
        ...


class UploadStager(Protocol):
    async def stage(self, job_id: str, temp_path: str, original_filename: str) -> str:
        """Move a temporary upload into served storage and return its public URL. Raises StagingError."""
        ...

    async def discard(self, job_id: str) -> None:
        """Remove any staged media for a job (used when a job is deleted)."""
        ...
