"""Upload staging: move a received file into served storage, then hand the job to the worker."""
import asyncio
import glob
import logging
import os
import shutil

from voicebrief.core.config import Settings
from voicebrief.core.errors import StagingError
from voicebrief.core.interfaces import UploadStager
from .orchestrator import failure_reason
from .store import JobStore
from .worker import JobRunner

logger = logging.getLogger(__name__)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("temp_file_delete_failed", exc_info=True, extra={"path": path})


class LocalUploadStager:
    """UploadStager that keeps audio on local disk under media_root and serves it at {public_base_url}/media/<job_id><ext>.
    Why available: Gives the ASR provider a URL to fetch the audio from; the temporary upload copy is always removed."""

    def __init__(self, media_root: str, public_base_url: str):
        self.media_root = media_root
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalUploadStager":
        return cls(settings.media_root, settings.public_base_url)

    def _move(self, temp_path: str, dest_path: str) -> None:
        os.makedirs(self.media_root, exist_ok=True)
        shutil.move(temp_path, dest_path)

    async def stage(self, job_id: str, temp_path: str, original_filename: str) -> str:
        ext = os.path.splitext(original_filename or "")[1].lower()
        name = f"{job_id}{ext}"
        dest_path = os.path.join(self.media_root, name)
        try:
            await asyncio.to_thread(self._move, temp_path, dest_path)
        except OSError as e:
            raise StagingError(f"Upload staging failed: {e}") from e
        finally:
            _remove_quietly(temp_path)
        return f"{self.public_base_url}/media/{name}"

    async def discard(self, job_id: str) -> None:
        for path in glob.glob(os.path.join(glob.escape(self.media_root), f"{glob.escape(job_id)}.*")):
            _remove_quietly(path)
        _remove_quietly(os.path.join(self.media_root, job_id))


async def stage_and_submit(
    job_id: str,
    temp_path: str,
    original_filename: str,
    *,
    stager: UploadStager,
    store: JobStore,
    runner: JobRunner,
) -> None:
    """Background step after an upload is accepted: stage the file, mark the job `uploaded`, submit it to the worker. A staging or submit failure marks the job failed; staged audio of a job that never reaches the worker queue is discarded.
    Why available: Runs as a FastAPI background task so the upload request returns as soon as the job record exists."""
    try:
        audio_url = await stager.stage(job_id, temp_path, original_filename)
    except Exception as e:
        logger.exception("upload_staging_failed", extra={"job_id": job_id})
        await runner.orchestrator.fail(job_id, failure_reason(e))
        return

    try:
        job = await store.mark_uploaded(job_id, audio_url)
    except Exception as e:
        logger.exception("upload_mark_failed", extra={"job_id": job_id})
        await runner.orchestrator.fail(job_id, failure_reason(e))
        await stager.discard(job_id)
        return
    if job is None:
        # deleted (or failed) while staging
        logger.warning("upload_not_submitted", extra={"job_id": job_id})
        await stager.discard(job_id)
        return

    logger.info("upload_staged", extra={"job_id": job_id, "audio_url": audio_url})
    try:
        runner.submit(job_id, audio_url)
    except Exception as e:
        logger.exception("upload_submit_failed", extra={"job_id": job_id})
        await runner.orchestrator.fail(job_id, failure_reason(e))
