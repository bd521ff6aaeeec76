import pytest
from datetime import datetime, timedelta, timezone
from pricewatch.core.exceptions import JobNotFoundError
from pricewatch.schemas.job_schemas import JobStatus
from pricewatch.services.job_manager import JobManager


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return JobManager(clock=clock)


def test_create_job_is_pending(manager):
    job = manager.create_job("disco", "Disco", "categories")

    assert job.status == JobStatus.PENDING
    assert job.mode == "categories"
    assert job.start_time is None
    assert manager.get_job(job.job_id) == job


def test_get_unknown_job(manager):
    assert manager.get_job("missing") is None


def test_lifecycle_timestamps(manager, clock):
    job = manager.create_job("disco", "Disco")

    running = manager.update_status(job.job_id, JobStatus.RUNNING)
    clock.advance(seconds=3)
    done = manager.update_status(job.job_id, JobStatus.COMPLETED, result={"saved_count": 5})

    assert running.start_time == clock.now - timedelta(seconds=3)
    assert done.end_time == clock.now
    assert done.end_time >= done.start_time
    assert done.result == {"saved_count": 5}
    assert done.duration_ms == 3000


def test_failed_job_keeps_error(manager):
    job = manager.create_job("disco", "Disco")
    manager.update_status(job.job_id, JobStatus.RUNNING)

    failed = manager.update_status(job.job_id, "failed", error="boom")

    assert failed.status == JobStatus.FAILED
    assert failed.error == "boom"
    assert failed.end_time is not None


def test_update_unknown_job(manager):
    with pytest.raises(JobNotFoundError):
        manager.update_status("missing", JobStatus.RUNNING)


def test_returned_jobs_are_copies(manager):
    job = manager.create_job("disco", "Disco")
    job.status = JobStatus.FAILED

    assert manager.get_job(job.job_id).status == JobStatus.PENDING


def test_is_running_and_has_active(manager):
    job = manager.create_job("disco", "Disco")
    assert manager.has_active("disco")
    assert not manager.is_running("disco")

    manager.update_status(job.job_id, JobStatus.RUNNING)
    assert manager.is_running("disco")
    assert not manager.is_running("vea")

    manager.update_status(job.job_id, JobStatus.COMPLETED)
    assert not manager.has_active("disco")


def test_list_jobs_newest_first_with_filters(manager, clock):
    ids = []
    for source in ["disco", "vea", "disco"]:
        ids.append(manager.create_job(source, source.title()).job_id)
        clock.advance(minutes=1)
    manager.update_status(ids[0], JobStatus.RUNNING)

    listing = manager.list_jobs()
    assert [j.job_id for j in listing.jobs] == list(reversed(ids))
    assert listing.total == 3

    assert [j.job_id for j in manager.list_jobs(source_key="disco").jobs] == [ids[2], ids[0]]
    assert [j.job_id for j in manager.list_jobs(status="running").jobs] == [ids[0]]


def test_list_jobs_pagination(manager, clock):
    for _ in range(5):
        manager.create_job("disco", "Disco")
        clock.advance(seconds=1)

    page = manager.list_jobs(limit=2, offset=2)
    assert len(page.jobs) == 2
    assert page.total == 5
    assert page.offset == 2

    assert manager.list_jobs(limit=1000).limit == 200
    assert manager.list_jobs(limit=0).limit == 1
    assert manager.list_jobs(offset=-5).offset == 0


def test_get_stats(manager):
    first = manager.create_job("disco", "Disco")
    second = manager.create_job("vea", "Vea")
    manager.create_job("jumbo", "Jumbo")
    manager.update_status(first.job_id, JobStatus.RUNNING)
    manager.update_status(second.job_id, JobStatus.FAILED)

    stats = manager.get_stats()

    assert stats.total == 3
    assert stats.pending == 1
    assert stats.running == 1
    assert stats.failed == 1
    assert stats.completed == 0


def test_cleanup_removes_only_old_terminal_jobs(manager, clock):
    for i in range(5):
        job = manager.create_job(f"source-{i}", "Old")
        manager.update_status(job.job_id, JobStatus.COMPLETED if i % 2 else JobStatus.FAILED)
    running = [manager.create_job(f"busy-{i}", "Busy") for i in range(2)]
    for job in running:
        manager.update_status(job.job_id, JobStatus.RUNNING)

    clock.advance(hours=48)
    recent = manager.create_job("recent", "Recent")
    manager.update_status(recent.job_id, JobStatus.COMPLETED)

    removed = manager.cleanup(24)

    assert removed == 5
    assert manager.get_stats().total == 3
    assert all(manager.get_job(job.job_id) for job in running)
    assert manager.get_job(recent.job_id) is not None


def test_clear(manager):
    manager.create_job("disco", "Disco")
    manager.clear()
    assert manager.get_stats().total == 0


@pytest.mark.asyncio
async def test_start_and_stop_cleanup_schedule(clock):
    manager = JobManager(retention_hours=24, cleanup_interval_seconds=3600, clock=clock)
    job = manager.create_job("disco", "Disco")
    manager.update_status(job.job_id, JobStatus.COMPLETED)
    clock.advance(hours=30)

    manager.start()
    assert manager._cleanup_task is not None
    assert manager.get_job(job.job_id) is None

    await manager.stop()
    assert manager._cleanup_task is None
