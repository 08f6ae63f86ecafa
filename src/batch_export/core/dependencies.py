"""FastAPI dependency injection for database sessions and the job tracker."""

from collections.abc import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from batch_export.core.database import get_session_factory
from batch_export.services.job_tracker import JobExecutionTracker


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_job_tracker(request: Request) -> JobExecutionTracker:
    """Return the tracker created during application startup.

    Raises:
        HTTPException: If the application has not finished starting.
    """
    tracker: JobExecutionTracker | None = getattr(request.app.state, "job_tracker", None)
    if tracker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job tracker not initialized",
        )
    return tracker
