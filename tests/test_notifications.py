import pytest
import asyncio
import aiohttp
from datetime import datetime, timedelta, timezone
from pricewatch.schemas.job_schemas import Job, JobStatus
from pricewatch.services.notifications import COMPLETED, STARTED, NotificationDispatcher, build_payload

WEBHOOK_URL = "https://hooks.example.com/pricewatch"


def make_job(status=JobStatus.COMPLETED, result=None, error=None):
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return Job(
        job_id="job-1",
        source_key="disco",
        source_name="Disco",
        mode="categories",
        status=status,
        start_time=start,
        end_time=start + timedelta(seconds=2) if status.is_terminal else None,
        result=result,
        error=error,
        created_at=start,
    )


class StubDispatcher(NotificationDispatcher):
    """Dispatcher whose HTTP call is replaced by a canned outcome."""

    def __init__(self, outcome, webhook_url=WEBHOOK_URL):
        super().__init__(webhook_url, timeout=10.0)
        self.outcome = outcome
        self.payloads = []

    async def _post(self, payload):
        self.payloads.append(payload)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def test_started_payload():
    payload = build_payload(STARTED, make_job(JobStatus.RUNNING))

    assert payload["event"] == "started"
    assert payload["jobId"] == "job-1"
    assert payload["sourceKey"] == "disco"
    assert payload["sourceName"] == "Disco"
    assert payload["status"] == "running"
    assert "timestamp" in payload
    assert "durationMs" not in payload


def test_completed_payload_carries_result():
    payload = build_payload(COMPLETED, make_job(result={"saved_count": 3}))

    assert payload["result"] == {"saved_count": 3}
    assert payload["durationMs"] == 2000
    assert "error" not in payload


def test_failed_payload_carries_error():
    payload = build_payload(COMPLETED, make_job(JobStatus.FAILED, error="boom"))

    assert payload["status"] == "failed"
    assert payload["error"] == "boom"
    assert "result" not in payload


@pytest.mark.asyncio
async def test_send_without_webhook_is_skipped():
    dispatcher = StubDispatcher((200, "ok"), webhook_url=None)

    result = await dispatcher.send(STARTED, make_job(JobStatus.RUNNING))

    assert not result.success
    assert result.error == "not configured"
    assert dispatcher.payloads == []


@pytest.mark.asyncio
async def test_send_success():
    dispatcher = StubDispatcher((204, ""))

    result = await dispatcher.send(COMPLETED, make_job(result={}))

    assert result.success
    assert len(dispatcher.payloads) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome, error", [
    ((500, "Internal Server Error"), "HTTP 500"),
    (asyncio.TimeoutError(), "timeout"),
    (aiohttp.ClientConnectionError("connection refused"), "connection refused"),
])
async def test_send_failures_are_returned(outcome, error):
    dispatcher = StubDispatcher(outcome)

    result = await dispatcher.send(COMPLETED, make_job(result={}))

    assert not result.success
    assert result.error == error
    assert len(dispatcher.payloads) == 1
