"""Batch API endpoints: launch exports and observe job executions."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from batch_export.core.dependencies import get_async_session, get_job_tracker
from batch_export.lib.export_engine import InvalidTransitionError
from batch_export.schemas.batch import (
    JobExecutionDetail,
    JobLaunchResponse,
    JobStatusResponse,
    PaginatedJobExecutionResponse,
)
from batch_export.schemas.common import ErrorResponse, PaginationMeta
from batch_export.services.job_service import list_job_executions
from batch_export.services.job_tracker import JobExecutionTracker

batch_router = APIRouter(tags=["batch"])


@batch_router.post(
    "/export",
    response_model=JobLaunchResponse,
    responses={500: {"model": ErrorResponse}},
)
async def start_export(
    where_clause: str | None = Query(None, alias="whereClause"),
    filename: str | None = Query(None),
    tracker: JobExecutionTracker = Depends(get_job_tracker),
) -> JobLaunchResponse | JSONResponse:
    """Launch an export job; completion is observed via the job status endpoint."""
    try:
        job = await tracker.launch(where_clause, filename)
    except Exception as exc:
        logger.exception("Error starting export job")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )
    return JobLaunchResponse.from_job(job)


@batch_router.get(
    "/job/{job_id}",
    response_model=JobStatusResponse,
    responses={404: {"description": "Unknown job id"}},
)
async def get_job_status(
    job_id: int,
    tracker: JobExecutionTracker = Depends(get_job_tracker),
) -> JobStatusResponse | Response:
    """Get the status of one job execution."""
    job = await tracker.status(job_id)
    if job is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JobStatusResponse.from_job(job)


@batch_router.post(
    "/job/{job_id}/stop",
    response_model=JobStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def stop_job(
    job_id: int,
    tracker: JobExecutionTracker = Depends(get_job_tracker),
) -> JobStatusResponse:
    """Ask a running job to stop at its next chunk boundary."""
    try:
        job = await tracker.stop(job_id)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job execution not found")
    return JobStatusResponse.from_job(job)


@batch_router.get(
    "/jobs",
    response_model=PaginatedJobExecutionResponse,
)
async def list_jobs(
    status_filter: str | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session),
) -> PaginatedJobExecutionResponse:
    """List job executions, newest first."""
    jobs, total = await list_job_executions(
        session,
        status_filter=status_filter,
        page=page,
        page_size=page_size,
    )
    return PaginatedJobExecutionResponse(
        items=[JobExecutionDetail.from_job(j) for j in jobs],
        pagination=PaginationMeta(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
        ),
    )
