"""Unit tests for the background job runner."""
import asyncio

import pytest

from conftest import FakeSummaryClient, FakeTranscriber, summary_json
from voicebrief.core.interfaces import TranscriptionResult
from voicebrief.pipeline.jobs import JobStatus
from voicebrief.pipeline.orchestrator import PipelineOrchestrator
from voicebrief.pipeline.store import InMemoryJobStore
from voicebrief.pipeline.worker import JobRunner


class CrashingOrchestrator(PipelineOrchestrator):
    """run() escapes with an exception for one job id, as a buggy pipeline would."""

    def __init__(self, *args, crash_on, **kwargs):
        super().__init__(*args, **kwargs)
        self.crash_on = crash_on

    async def run(self, job_id, audio_url):
        if job_id == self.crash_on:
            raise RuntimeError("worker exploded")
        await super().run(job_id, audio_url)


async def _uploaded(store, n):
    ids = []
    for i in range(n):
        job = await store.create("alice", f"{i}.mp3")
        await store.mark_uploaded(job.job_id, f"http://testserver/media/{job.job_id}.mp3")
        ids.append(job.job_id)
    return ids


def test_worker_count_must_be_positive(make_summarizer):
    orch = PipelineOrchestrator(InMemoryJobStore(), FakeTranscriber(TranscriptionResult(text="x")), make_summarizer(None))
    with pytest.raises(ValueError):
        JobRunner(orch, worker_count=0)


def test_submit_before_start_raises(make_summarizer):
    orch = PipelineOrchestrator(InMemoryJobStore(), FakeTranscriber(TranscriptionResult(text="x")), make_summarizer(None))
    with pytest.raises(RuntimeError):
        JobRunner(orch).submit("job", "http://x")


@pytest.mark.asyncio
async def test_runner_processes_submitted_jobs(make_summarizer):
    store = InMemoryJobStore()
    transcriber = FakeTranscriber(TranscriptionResult(text="Buy milk. Call mom."))
    orch = PipelineOrchestrator(store, transcriber, make_summarizer(FakeSummaryClient(lambda p: summary_json())))
    runner = JobRunner(orch, worker_count=2)

    runner.start()
    runner.start()  # idempotent
    assert runner.running
    ids = await _uploaded(store, 3)
    for job_id in ids:
        runner.submit(job_id, f"http://testserver/media/{job_id}.mp3")
    await asyncio.wait_for(runner.join(), timeout=5)
    await runner.stop()

    assert not runner.running
    assert len(transcriber.urls) == 3
    for job_id in ids:
        assert (await store.get(job_id, "alice")).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_crash_is_funneled_into_failed_and_worker_survives(make_summarizer):
    store = InMemoryJobStore()
    ids = await _uploaded(store, 2)
    orch = CrashingOrchestrator(
        store,
        FakeTranscriber(TranscriptionResult(text="Fine.")),
        make_summarizer(FakeSummaryClient(lambda p: summary_json())),
        crash_on=ids[0],
    )
    runner = JobRunner(orch, worker_count=1)

    runner.start()
    for job_id in ids:
        runner.submit(job_id, "http://testserver/media/a.mp3")
    await asyncio.wait_for(runner.join(), timeout=5)
    await runner.stop()

    crashed = await store.get(ids[0], "alice")
    assert crashed.status == JobStatus.FAILED
    assert crashed.error_message == "worker exploded"
    assert (await store.get(ids[1], "alice")).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_stop_marks_in_flight_job_cancelled(make_summarizer):
    started = asyncio.Event()

    class BlockingTranscriber:
        async def transcribe(self, audio_url):
            started.set()
            await asyncio.sleep(10)

    store = InMemoryJobStore()
    (job_id,) = await _uploaded(store, 1)
    orch = PipelineOrchestrator(store, BlockingTranscriber(), make_summarizer(FakeSummaryClient(lambda p: summary_json())))
    runner = JobRunner(orch, worker_count=1)

    runner.start()
    runner.submit(job_id, "http://testserver/media/a.mp3")
    await asyncio.wait_for(started.wait(), timeout=5)
    await runner.stop()

    job = await store.get(job_id, "alice")
    assert job.status == JobStatus.FAILED
    assert job.error_message == "Processing cancelled"
