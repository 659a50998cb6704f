"""Unit tests for the job state machine and the in-memory job store."""
import itertools

import pytest

from voicebrief.models.schemas import Summary
from voicebrief.pipeline.jobs import ALLOWED_TRANSITIONS, JobStatus, can_transition
from voicebrief.pipeline.store import InMemoryJobStore

SUMMARY = Summary(title="Errands", summary="Two errands.", action_items=["Buy milk"], key_points=["Short"])


def test_transitions_are_forward_only():
    assert can_transition(JobStatus.PENDING, JobStatus.UPLOADED)
    assert can_transition(JobStatus.UPLOADED, JobStatus.PROCESSING)
    assert can_transition(JobStatus.PROCESSING, JobStatus.COMPLETED)
    assert not can_transition(JobStatus.PENDING, JobStatus.PROCESSING)
    assert not can_transition(JobStatus.PROCESSING, JobStatus.UPLOADED)
    assert not can_transition(JobStatus.UPLOADED, JobStatus.COMPLETED)


@pytest.mark.parametrize("src", [JobStatus.PENDING, JobStatus.UPLOADED, JobStatus.PROCESSING])
def test_failed_reachable_from_every_non_terminal_state(src):
    assert can_transition(src, JobStatus.FAILED)


@pytest.mark.parametrize(
    "src,dst",
    list(itertools.product([JobStatus.COMPLETED, JobStatus.FAILED], list(JobStatus))),
)
def test_terminal_states_have_no_exit(src, dst):
    assert not can_transition(src, dst)


def test_every_status_has_a_transition_entry():
    assert set(ALLOWED_TRANSITIONS) == set(JobStatus)


async def _processing_job(store, owner="alice"):
    job = await store.create(owner, "note.mp3")
    await store.mark_uploaded(job.job_id, "http://testserver/media/x.mp3")
    await store.mark_processing(job.job_id)
    return job.job_id


@pytest.mark.asyncio
async def test_create_starts_pending_with_nothing_set():
    store = InMemoryJobStore()
    job = await store.create("alice", "note.mp3")
    assert job.status == JobStatus.PENDING
    assert job.original_filename == "note.mp3"
    assert job.transcript is None and job.summary is None and job.error_message is None
    assert job.created_at == job.updated_at


@pytest.mark.asyncio
async def test_happy_path_sets_result_fields():
    store = InMemoryJobStore()
    job_id = await _processing_job(store)
    done = await store.mark_completed(job_id, "Buy milk.", SUMMARY, duration_seconds=3.5, confidence=0.9)

    assert done.status == JobStatus.COMPLETED
    assert done.transcript == "Buy milk."
    assert done.summary == SUMMARY
    assert done.duration_seconds == 3.5
    assert done.confidence == 0.9
    assert done.audio_url == "http://testserver/media/x.mp3"
    assert done.is_terminal


@pytest.mark.asyncio
async def test_late_failure_does_not_overwrite_completed():
    store = InMemoryJobStore()
    job_id = await _processing_job(store)
    await store.mark_completed(job_id, "Buy milk.", SUMMARY)

    assert await store.mark_failed(job_id, "too late") is None
    job = await store.get(job_id, "alice")
    assert job.status == JobStatus.COMPLETED
    assert job.summary == SUMMARY
    assert job.error_message is None


@pytest.mark.asyncio
async def test_late_completion_does_not_overwrite_failed():
    store = InMemoryJobStore()
    job_id = await _processing_job(store)
    await store.mark_failed(job_id, "ASR down")

    assert await store.mark_completed(job_id, "text", SUMMARY) is None
    job = await store.get(job_id, "alice")
    assert job.status == JobStatus.FAILED
    assert job.error_message == "ASR down"
    assert job.transcript is None and job.summary is None


@pytest.mark.asyncio
async def test_processing_requires_uploaded_first():
    store = InMemoryJobStore()
    job = await store.create("alice")
    assert await store.mark_processing(job.job_id) is None
    assert (await store.get(job.job_id, "alice")).status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_writes_to_unknown_job_return_none():
    store = InMemoryJobStore()
    assert await store.mark_uploaded("missing", "u") is None
    assert await store.mark_failed("missing", "x") is None


@pytest.mark.asyncio
async def test_updated_at_strictly_increases_on_frozen_clock():
    store = InMemoryJobStore(clock=lambda: 1000.0)
    job = await store.create("alice")
    seen = [job.updated_at]
    seen.append((await store.mark_uploaded(job.job_id, "u")).updated_at)
    seen.append((await store.mark_processing(job.job_id)).updated_at)
    seen.append((await store.mark_completed(job.job_id, "t", SUMMARY)).updated_at)
    assert all(b > a for a, b in zip(seen, seen[1:]))


@pytest.mark.asyncio
async def test_foreign_jobs_look_missing():
    store = InMemoryJobStore()
    job = await store.create("alice")
    assert await store.get(job.job_id, "bob") is None
    assert await store.delete(job.job_id, "bob") is None
    assert await store.get(job.job_id, "alice") is not None


@pytest.mark.asyncio
async def test_delete_then_pipeline_writes_are_refused():
    store = InMemoryJobStore()
    job_id = await _processing_job(store)
    deleted = await store.delete(job_id, "alice")
    assert deleted.job_id == job_id
    assert await store.mark_completed(job_id, "t", SUMMARY) is None
    assert await store.get(job_id, "alice") is None


@pytest.mark.asyncio
async def test_list_is_owner_scoped_newest_first_and_paged():
    ticks = iter(range(100))
    store = InMemoryJobStore(clock=lambda: float(next(ticks)))
    ids = [(await store.create("alice", f"{i}.mp3")).job_id for i in range(5)]
    await store.create("bob", "other.mp3")

    page1, total = await store.list_for_owner("alice", page=1, limit=2)
    page3, _ = await store.list_for_owner("alice", page=3, limit=2)
    empty, _ = await store.list_for_owner("alice", page=4, limit=2)

    assert total == 5
    assert [j.job_id for j in page1] == [ids[4], ids[3]]
    assert [j.job_id for j in page3] == [ids[0]]
    assert empty == []


@pytest.mark.asyncio
async def test_returned_jobs_are_copies():
    store = InMemoryJobStore()
    job_id = await _processing_job(store)
    done = await store.mark_completed(job_id, "t", SUMMARY)
    done.summary.action_items.append("tampered")
    done.status = JobStatus.FAILED

    stored = await store.get(job_id, "alice")
    assert stored.status == JobStatus.COMPLETED
    assert stored.summary.action_items == ["Buy milk"]
