"""Map-reduce summarization of transcripts with per-call retry.

Short transcripts get one model call. Long ones are split into chunks, each
chunk is summarized on its own (map), and the partial summaries are merged by
one more call (reduce). A map call that keeps failing degrades to a fallback
chunk summary instead of failing the job; a reduce call that keeps failing
raises, and the orchestrator records the job as failed.
"""
import asyncio
import logging
from typing import List, Optional

from voicebrief.core.config import Settings
from voicebrief.core.errors import ProviderError
from voicebrief.core.interfaces import SummaryClient
from voicebrief.extract.chunker import split_text
from voicebrief.extract.response_parser import parse_summary_response
from voicebrief.models.schemas import Summary
from voicebrief.prompts.loader import PromptTemplate, SummaryPrompts, load_summary_prompts
from voicebrief.utils.retry import with_retry

logger = logging.getLogger(__name__)

EMPTY_RECORDING_TITLE = "Empty Recording"
EMPTY_RECORDING_SUMMARY = "No speech detected in the audio."
FALLBACK_TITLE = "Summarization Failed"
FALLBACK_KEY_POINT = "Unable to process transcript"
FALLBACK_EXCERPT_CHARS = 500

# ProviderError and MalformedResponse in practice; other clients may raise anything
RETRYABLE_ERRORS = (Exception,)


def empty_summary() -> Summary:
    return Summary(
        title=EMPTY_RECORDING_TITLE,
        summary=EMPTY_RECORDING_SUMMARY,
        action_items=[],
        key_points=[],
    )


def fallback_summary(text: str) -> Summary:
    """Degraded chunk summary used when every attempt for a chunk failed: the first 500 characters of the chunk plus an ellipsis."""
    return Summary(
        title=FALLBACK_TITLE,
        summary=text[:FALLBACK_EXCERPT_CHARS] + "...",
        action_items=[],
        key_points=[FALLBACK_KEY_POINT],
    )


def render_parts(summaries: List[Summary]) -> str:
    """Render chunk summaries, in document order, as the "Part N" block the reduce prompt expects."""
    return "\n\n".join(
        f"Part {i}:\n"
        f"Summary: {s.summary}\n"
        f"Key Points: {', '.join(s.key_points)}\n"
        f"Action Items: {', '.join(s.action_items)}"
        for i, s in enumerate(summaries, start=1)
    )


class Summarizer:
    """Turns a transcript into a Summary using an injected SummaryClient.
    Why available: Summarization step of the pipeline; owns chunking, retry, timeouts and map-reduce composition so the orchestrator only sees a Summary or an exception."""

    def __init__(
        self,
        client: SummaryClient,
        *,
        prompts: Optional[SummaryPrompts] = None,
        chunk_size: int = 4000,
        max_attempts: int = 3,
        call_timeout_seconds: float = 60.0,
        retry_backoff_seconds: float = 0.5,
        map_concurrency: int = 1,
    ):
        self.client = client
        self.prompts = prompts or load_summary_prompts()
        self.chunk_size = chunk_size
        self.max_attempts = max_attempts
        self.call_timeout_seconds = call_timeout_seconds
        self.retry_backoff_seconds = retry_backoff_seconds
        self.map_concurrency = map_concurrency

    @classmethod
    def from_settings(cls, client: SummaryClient, settings: Settings) -> "Summarizer":
        return cls(
            client,
            prompts=load_summary_prompts(settings.prompt_version),
            chunk_size=settings.chunk_size,
            max_attempts=settings.summary_max_attempts,
            call_timeout_seconds=settings.summary_timeout_seconds,
            retry_backoff_seconds=settings.summary_retry_backoff_seconds,
            map_concurrency=settings.summary_map_concurrency,
        )

    async def summarize(self, transcript: str) -> Summary:
        """Summarize a full transcript. Blank input returns the "Empty Recording" placeholder without a model call; input up to chunk_size gets one full-prompt call; longer input goes through map-reduce."""
        if not transcript or not transcript.strip():
            return empty_summary()

        logger.info("summarization_started", extra={"chars": len(transcript)})
        if len(transcript) <= self.chunk_size:
            return await self.summarize_chunk(transcript, partial=False)

        logger.info("summarization_map_reduce", extra={"chars": len(transcript), "chunk_size": self.chunk_size})
        return await self.map_reduce(transcript)

    async def _call_and_parse(self, template: PromptTemplate, prompt: str) -> Summary:
        try:
            raw = await asyncio.wait_for(
                self.client.complete(prompt, system=template.system),
                timeout=self.call_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Summarization call timed out after {self.call_timeout_seconds:g}s"
            ) from e
        return parse_summary_response(raw)

    async def summarize_chunk(self, text: str, partial: bool = False) -> Summary:
        """Summarize one piece of text with up to max_attempts call+parse attempts. Never raises for provider or parse failures: on exhaustion returns fallback_summary(text)."""
        template = self.prompts.partial if partial else self.prompts.full
        prompt = template.render(transcript=text)
        try:
            summary = await with_retry(
                lambda: self._call_and_parse(template, prompt),
                attempts=self.max_attempts,
                backoff_seconds=self.retry_backoff_seconds,
                retry_on=RETRYABLE_ERRORS,
                label="summarize_partial" if partial else "summarize_full",
            )
        except RETRYABLE_ERRORS as e:
            logger.error(
                "chunk_summary_failed",
                extra={"attempts": self.max_attempts, "error": str(e), "partial": partial},
            )
            return fallback_summary(text)
        return summary

    async def _map(self, chunks: List[str]) -> List[Summary]:
        if self.map_concurrency <= 1:
            out: List[Summary] = []
            for i, chunk in enumerate(chunks, start=1):
                logger.info("chunk_summary_started", extra={"chunk": i, "chunks": len(chunks)})
                out.append(await self.summarize_chunk(chunk, partial=True))
            return out

        sem = asyncio.Semaphore(self.map_concurrency)

        async def one(chunk: str) -> Summary:
            async with sem:
                return await self.summarize_chunk(chunk, partial=True)

        # gather keeps results in argument order
        return list(await asyncio.gather(*(one(c) for c in chunks)))

    async def reduce(self, summaries: List[Summary]) -> Summary:
        """Merge chunk summaries into one final Summary. Retried like a map call, but raises the last error once attempts are exhausted."""
        template = self.prompts.reduce
        prompt = template.render(parts=render_parts(summaries))
        return await with_retry(
            lambda: self._call_and_parse(template, prompt),
            attempts=self.max_attempts,
            backoff_seconds=self.retry_backoff_seconds,
            retry_on=RETRYABLE_ERRORS,
            label="summarize_reduce",
        )

    async def map_reduce(self, transcript: str) -> Summary:
        chunks = split_text(transcript, self.chunk_size)
        logger.info("transcript_split", extra={"chunks": len(chunks)})
        summaries = await self._map(chunks)
        logger.info("chunk_summaries_reducing", extra={"chunks": len(summaries)})
        return await self.reduce(summaries)
