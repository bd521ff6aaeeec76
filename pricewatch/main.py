from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import get_settings
from pricewatch.core.exceptions import (
    InvalidModeError, JobConflictError, JobNotFoundError, UnknownSourceError,
)
from pricewatch.core.logging_config import configure_logging
from pricewatch.core.merchant_registry import MerchantRegistry
from pricewatch.models.database import engine, init_db
from pricewatch.routes.job_routes import router as job_router
from pricewatch.routes.product_routes import router as product_router
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.job_executor import JobExecutor
from pricewatch.services.job_manager import JobManager
from pricewatch.services.notifications import NotificationDispatcher
import logging
import traceback

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    log_filename = configure_logging(settings.debug)
    logger.info("=" * 80)
    logger.info(f"Starting pricewatch - Log file: {log_filename}")
    logger.info("=" * 80)

    logger.info(f"Database: {engine.url}")
    init_db()
    registry = MerchantRegistry(product_codes=settings.product_codes)
    client = VtexQueryClient(settings.vtex_sha256_hash, timeout=settings.request_timeout_seconds)
    job_manager = JobManager(settings.job_retention_hours, settings.job_cleanup_interval_seconds)
    job_manager.start()

    app.state.registry = registry
    app.state.job_manager = job_manager
    app.state.job_executor = JobExecutor(
        job_manager,
        registry,
        client,
        CatalogStore(),
        NotificationDispatcher(settings.webhook_url, settings.notification_timeout_seconds),
        settings,
    )
    logger.info(f"Merchants: {', '.join(registry.keys())}")

    try:
        yield
    finally:
        logger.info("Shutting down")
        await app.state.job_executor.shutdown()
        await job_manager.stop()
        await client.aclose()


# Create FastAPI app
app = FastAPI(
    title="Pricewatch API",
    description="Price aggregation across VTEX storefronts with tracked sync jobs",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(job_router, prefix="/api/v1")
app.include_router(product_router, prefix="/api/v1")


@app.exception_handler(UnknownSourceError)
async def unknown_source_handler(request: Request, exc: UnknownSourceError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(JobNotFoundError)
async def job_not_found_handler(request: Request, exc: JobNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidModeError)
async def invalid_mode_handler(request: Request, exc: InvalidModeError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(JobConflictError)
async def job_conflict_handler(request: Request, exc: JobConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "sourceKeys": exc.source_keys})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception handler caught: {exc}")
    logger.error(traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal error: {type(exc).__name__}"},
    )


# Health check endpoint
@app.get("/health")
def health_check():
    """Check if the API is healthy."""
    return {"status": "healthy"}
