"""AssemblyAI speech-to-text over its REST API.

AssemblyAI fetches the audio itself from a public URL, so nothing is
downloaded here: submit a transcript request, then poll it until it reaches
`completed` or `error`.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from voicebrief.core.config import Settings
from voicebrief.core.errors import EmptyTranscriptError, TranscriptionError
from voicebrief.core.interfaces import TranscriptionResult

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30.0
TERMINAL_STATUSES = ("completed", "error")


class AssemblyAITranscriber:
    """TranscriptionClient for AssemblyAI pre-recorded audio, with automatic language detection.
    Why available: ASR step of the pipeline; every provider or HTTP failure surfaces as TranscriptionError so the orchestrator fails the job with the provider's message."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.assemblyai.com",
        poll_interval_seconds: float = 3.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.poll_interval_seconds = poll_interval_seconds
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            headers={"authorization": api_key},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssemblyAITranscriber":
        return cls(
            settings.assemblyai_api_key,
            base_url=settings.assemblyai_base_url,
            poll_interval_seconds=settings.assemblyai_poll_interval_seconds,
        )

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = await self._http.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200] if e.response is not None else ""
            raise TranscriptionError(
                f"Transcription provider returned HTTP {e.response.status_code}: {detail}"
            ) from e
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Transcription provider unreachable: {e}") from e
        except ValueError as e:
            raise TranscriptionError("Transcription provider returned invalid JSON") from e

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        """Submit audio_url for transcription and poll until done. Raises TranscriptionError on provider error and EmptyTranscriptError when no text came back."""
        created = await self._request(
            "POST",
            "/v2/transcript",
            json={"audio_url": audio_url, "language_detection": True},
        )
        transcript_id = created.get("id")
        if not transcript_id:
            raise TranscriptionError("Transcription provider did not return a transcript id")
        logger.info("transcription_submitted", extra={"transcript_id": transcript_id})

        data = created
        polls = 0
        while data.get("status") not in TERMINAL_STATUSES:
            await asyncio.sleep(self.poll_interval_seconds)
            data = await self._request("GET", f"/v2/transcript/{transcript_id}")
            polls += 1
            if polls % 10 == 0:
                logger.info(
                    "transcription_polling",
                    extra={"transcript_id": transcript_id, "polls": polls, "status": data.get("status")},
                )

        if data["status"] == "error":
            raise TranscriptionError(data.get("error") or "Transcription failed")

        text = data.get("text") or ""
        if not text.strip():
            raise EmptyTranscriptError()

        logger.info(
            "transcription_completed",
            extra={
                "transcript_id": transcript_id,
                "chars": len(text),
                "duration_seconds": data.get("audio_duration"),
                "confidence": data.get("confidence"),
            },
        )
        return TranscriptionResult(
            text=text,
            confidence=data.get("confidence"),
            duration_seconds=data.get("audio_duration"),
            transcript_id=transcript_id,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()
