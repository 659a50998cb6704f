import os
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv()


class Settings(BaseModel):
    """Application settings loaded from environment: provider keys and endpoints, model name, chunk/retry/timeout limits for the pipeline, upload limits, and storage paths.
    Why available: Single source of configuration so the API, worker, transcriber and summarizer all agree on limits and endpoints."""
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "")  # empty = api.openai.com
    chat_model: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")

    assemblyai_api_key: str = os.getenv("ASSEMBLYAI_API_KEY", "")
    assemblyai_base_url: str = os.getenv("ASSEMBLYAI_BASE_URL", "https://api.assemblyai.com")
    assemblyai_poll_interval_seconds: float = float(os.getenv("ASSEMBLYAI_POLL_INTERVAL_SECONDS", "3"))
    transcription_timeout_seconds: float = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "900"))

    chunk_size: int = int(os.getenv("CHUNK_SIZE", "4000"))  # ~1000 tokens
    summary_max_attempts: int = int(os.getenv("SUMMARY_MAX_ATTEMPTS", "3"))
    summary_temperature: float = float(os.getenv("SUMMARY_TEMPERATURE", "0.3"))
    summary_max_tokens: int = int(os.getenv("SUMMARY_MAX_TOKENS", "2048"))
    summary_timeout_seconds: float = float(os.getenv("SUMMARY_TIMEOUT_SECONDS", "60"))
    summary_retry_backoff_seconds: float = float(os.getenv("SUMMARY_RETRY_BACKOFF_SECONDS", "0.5"))
    summary_map_concurrency: int = int(os.getenv("SUMMARY_MAP_CONCURRENCY", "1"))

    worker_count: int = int(os.getenv("WORKER_COUNT", "2"))
    max_upload_mb: int = int(os.getenv("MAX_UPLOAD_MB", "50"))
    data_root: str = os.getenv("DATA_ROOT", os.path.join(os.getcwd(), "data"))
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    prompt_version: str = os.getenv("PROMPT_VERSION", "v1")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @field_validator(
        "chunk_size",
        "summary_max_attempts",
        "summary_max_tokens",
        "summary_map_concurrency",
        "worker_count",
        "max_upload_mb",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Ensure count-style limits are positive integers. Prevents invalid config from env."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator(
        "assemblyai_poll_interval_seconds",
        "transcription_timeout_seconds",
        "summary_timeout_seconds",
    )
    @classmethod
    def must_be_positive_seconds(cls, v):
        if v <= 0:
            raise ValueError("must be > 0 seconds")
        return v

    @property
    def upload_root(self) -> str:
        return os.path.join(self.data_root, "uploads")

    @property
    def media_root(self) -> str:
        return os.path.join(self.data_root, "media")


settings = Settings()
