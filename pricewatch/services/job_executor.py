from typing import List, Optional, Set, Union
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import Settings, get_settings
from pricewatch.core.exceptions import JobConflictError, JobExecutionError
from pricewatch.core.merchant_registry import MerchantConfig, MerchantRegistry, validate_mode
from pricewatch.schemas.job_schemas import Job, JobStatus
from pricewatch.schemas.product_schemas import RefreshResult, SyncResult
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.job_manager import JobManager
from pricewatch.services.notifications import COMPLETED, STARTED, NotificationDispatcher
from pricewatch.services.price_refresh import PriceRefreshScheduler
from pricewatch.services.save_policy import policy_for
from pricewatch.services.sync_engine import CatalogSyncEngine
import asyncio
import logging
import threading
import traceback

logger = logging.getLogger(__name__)

REFRESH_SOURCE_KEY = "price-refresh"
REFRESH_SOURCE_NAME = "Price refresh"


class JobExecutor:
    """Runs sync and refresh passes as tracked background jobs."""

    def __init__(
        self,
        job_manager: JobManager,
        registry: MerchantRegistry,
        client: VtexQueryClient,
        store: CatalogStore,
        notifier: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.job_manager = job_manager
        self.registry = registry
        self.client = client
        self.store = store
        self.settings = settings or get_settings()
        self.notifier = notifier or NotificationDispatcher(
            self.settings.webhook_url, self.settings.notification_timeout_seconds
        )
        self._background_tasks: Set[asyncio.Task] = set()
        self._submit_lock = threading.Lock()

    def _task_done_callback(self, task: asyncio.Task) -> None:
        """Remove task from set when done and log anything it raised."""
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task failed: {exc}")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._task_done_callback)
        return task

    def submit(self, source_key: str, mode: str = "categories") -> Job:
        """
        Start a sync job for one merchant.

        Raises:
            UnknownSourceError: If the merchant is not registered.
            InvalidModeError: If the mode is not supported.
            JobConflictError: If a job for the merchant is pending or running.
        """
        merchant = self.registry.get(source_key)
        validate_mode(mode)
        with self._submit_lock:
            if self.job_manager.has_active(merchant.key):
                raise JobConflictError(f"A job for {merchant.name} is already pending or running", [merchant.key])
            job = self.job_manager.create_job(merchant.key, merchant.name, mode)
        self._spawn(self.execute(job.job_id))
        return job

    def submit_all(self, mode: str = "categories") -> List[Job]:
        """
        Start a sync job for every merchant.

        Jobs run one after another, master first, so followers see the
        catalog the master has just written.
        """
        validate_mode(mode)
        merchants = self.registry.all()
        with self._submit_lock:
            active = [m.key for m in merchants if self.job_manager.has_active(m.key)]
            if active:
                raise JobConflictError(f"Jobs already pending or running for: {', '.join(active)}", active)
            jobs = [self.job_manager.create_job(m.key, m.name, mode) for m in merchants]
        self._spawn(self._execute_sequence([job.job_id for job in jobs]))
        return jobs

    def submit_refresh(self) -> Job:
        """Start a price refresh job."""
        with self._submit_lock:
            if self.job_manager.has_active(REFRESH_SOURCE_KEY):
                raise JobConflictError("A price refresh is already pending or running", [REFRESH_SOURCE_KEY])
            job = self.job_manager.create_job(REFRESH_SOURCE_KEY, REFRESH_SOURCE_NAME)
        self._spawn(self.execute(job.job_id))
        return job

    async def _execute_sequence(self, job_ids: List[str]) -> None:
        for job_id in job_ids:
            await self.execute(job_id)

    async def execute(self, job_id: str) -> Job:
        """
        Run one job to a terminal state.

        Any exception from the run marks the job failed with its message.
        Notification failures never change the job state.
        """
        job = self.job_manager.update_status(job_id, JobStatus.RUNNING)
        logger.info(f"Starting job {job_id} for {job.source_name}")
        started = self._spawn(self._notify(STARTED, job))

        try:
            result = await self._run(job)
            if not result.success:
                raise JobExecutionError(getattr(result, "error", None) or "Run reported failure")
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}")
            logger.debug(traceback.format_exc())
            job = self.job_manager.update_status(job_id, JobStatus.FAILED, error=str(e))
        else:
            job = self.job_manager.update_status(job_id, JobStatus.COMPLETED, result=result.summary())
            logger.info(f"Job {job_id} completed in {job.duration_ms}ms")

        # "completed" is never delivered ahead of "started"
        await asyncio.wait({started})
        await self._notify(COMPLETED, job)
        return job

    async def _run(self, job: Job) -> Union[SyncResult, RefreshResult]:
        if job.source_key == REFRESH_SOURCE_KEY:
            return await self.build_refresh_scheduler().run()

        merchant = self.registry.get(job.source_key)
        mode = job.mode or "categories"
        terms = self.registry.terms_for(merchant, mode)
        count = self.settings.category_result_count if mode == "categories" else 1
        return await self.build_sync_engine(merchant).run(merchant, terms, count)

    def build_sync_engine(self, merchant: MerchantConfig) -> CatalogSyncEngine:
        return CatalogSyncEngine(
            self.client,
            self.store,
            policy_for(merchant.is_master, self.store),
            delay_seconds=self.settings.term_delay_seconds,
            excluded_brands=self.settings.excluded_brands,
        )

    def build_refresh_scheduler(self) -> PriceRefreshScheduler:
        return PriceRefreshScheduler(
            self.client,
            self.store,
            self.registry,
            batch_limit=self.settings.refresh_batch_limit,
            group_size=self.settings.refresh_group_size,
            delay_seconds=self.settings.refresh_delay_seconds,
            epsilon=self.settings.price_change_epsilon,
            excluded_brands=self.settings.excluded_brands,
        )

    async def _notify(self, event: str, job: Job) -> None:
        try:
            await self.notifier.send(event, job)
        except Exception as e:
            logger.error(f"Error sending {event} notification for job {job.job_id}: {e}")

    async def shutdown(self) -> None:
        """Cancel outstanding jobs and notifications and wait for them to unwind."""
        tasks = list(self._background_tasks)
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} background tasks")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
