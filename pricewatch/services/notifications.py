"""Best-effort webhook delivery for job transitions."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pricewatch.schemas.job_schemas import Job, JobStatus, NotificationResult
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

STARTED = "started"
COMPLETED = "completed"


def build_payload(event: str, job: Job) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "event": event,
        "jobId": job.job_id,
        "sourceKey": job.source_key,
        "sourceName": job.source_name,
        "status": job.status.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if event == COMPLETED:
        if job.status == JobStatus.COMPLETED:
            payload["result"] = job.result
        else:
            payload["error"] = job.error
        payload["durationMs"] = job.duration_ms
    return payload


class NotificationDispatcher:
    """Posts job events to a webhook. One attempt per event, no retry."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, event: str, job: Job) -> NotificationResult:
        """
        Deliver one event.

        Failures (non-2xx, timeout, transport error) are logged and returned,
        never raised.
        """
        if not self.enabled:
            logger.debug(f"Webhook not configured, skipping {event} for job {job.job_id}")
            return NotificationResult(success=False, error="not configured")

        payload = build_payload(event, job)
        try:
            status, body = await self._post(payload)
        except asyncio.TimeoutError:
            logger.error(f"Webhook timed out after {self.timeout}s for job {job.job_id}")
            return NotificationResult(success=False, error="timeout")
        except aiohttp.ClientError as e:
            logger.error(f"Webhook error for job {job.job_id}: {e}")
            return NotificationResult(success=False, error=str(e))

        if not 200 <= status < 300:
            logger.error(f"Webhook returned {status} for job {job.job_id}: {body[:200]}")
            return NotificationResult(success=False, error=f"HTTP {status}")

        logger.info(f"Webhook sent: {event} for job {job.job_id}")
        return NotificationResult(success=True)

    async def _post(self, payload: Dict[str, Any]):
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self.webhook_url, json=payload) as response:
                return response.status, await response.text()
