"""FastAPI application factory.

Creates the FastAPI app with lifespan management and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from batch_export.core.background import task_runner
from batch_export.core.config import get_settings
from batch_export.core.database import dispose_engine, get_engine, get_session_factory, init_engine
from batch_export.core.logging import setup_logging
from batch_export.services.job_tracker import JobExecutionTracker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine and tracker on startup, stop jobs and dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    tracker = JobExecutionTracker(
        get_session_factory(),
        get_engine(),
        settings,
        runner=task_runner,
    )
    app.state.job_tracker = tracker
    logger.info("Batch Export service is ready. Use the REST API to trigger exports.")

    yield

    if task_runner.running_count:
        logger.warning(f"Shutting down with {task_runner.running_count} export jobs still running; stopping them")
    await tracker.shutdown()
    app.state.job_tracker = None
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Batch Export API",
        description="Parameterized database-to-file batch export with job status tracking",
        version="0.1.0",
        lifespan=lifespan,
    )

    from batch_export.api.router import create_router

    app.include_router(create_router(settings))

    return app
