"""Exception taxonomy for the processing pipeline.

Every failure the pipeline knows about is a VoiceBriefError; the orchestrator
turns any of them (and anything else) into a single `failed` job status whose
message is str(exc).
"""


class VoiceBriefError(Exception):
    """Base class for pipeline errors."""


class UpstreamTransportError(VoiceBriefError):
    """An external provider (ASR or summarization) was unreachable or returned an error."""


class TranscriptionError(UpstreamTransportError):
    """Transcription failed. Not retried: one ASR failure fails the job."""


class EmptyTranscriptError(TranscriptionError):
    """Transcription succeeded but produced no usable text."""

    MESSAGE = "No speech detected in audio"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class ProviderError(UpstreamTransportError):
    """Summarization provider call failed (transport, quota, timeout). Retried per call."""


class MalformedResponse(VoiceBriefError):
    """Model output could not be parsed into a summary even after cleaning."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class StoreUnavailable(VoiceBriefError):
    """The job store could not apply a write."""


class StagingError(VoiceBriefError):
    """An uploaded file could not be moved into served storage."""
