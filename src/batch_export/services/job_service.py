"""Job execution record store: create, transition, and query JobExecution rows."""

from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from batch_export.lib.export_engine import BatchStatus, ExitCode, JobResult, check_transition
from batch_export.models.job_execution import JobExecution


def describe_failures(failures: list[BaseException]) -> str:
    """Render every failure cause as one exit description."""
    return "; ".join(f"{type(exc).__name__}: {exc}" for exc in failures)


async def create_job_execution(
    session: AsyncSession,
    *,
    parameters: dict[str, Any],
    output_path: str | None = None,
) -> JobExecution:
    """Create a new execution record in STARTING.

    Args:
        session: Database session.
        parameters: Resolved launch parameters, including the run token.
        output_path: Resolved output file path.

    Returns:
        The created JobExecution.
    """
    job = JobExecution(
        status=BatchStatus.STARTING.value,
        exit_code=ExitCode.UNKNOWN.value,
        parameters=parameters,
        output_path=output_path,
        create_time=datetime.now(UTC),
    )
    session.add(job)
    await session.commit()
    await session.refresh(job)
    logger.info(f"Created job execution {job.id} (run.id={parameters.get('run.id')})")
    return job


async def mark_started(session: AsyncSession, job: JobExecution) -> JobExecution:
    """Move an execution from STARTING to STARTED."""
    job.status = check_transition(job.status, BatchStatus.STARTED).value
    job.start_time = datetime.now(UTC)
    job.exit_code = ExitCode.EXECUTING.value
    await session.commit()
    return job


async def finalize_job(session: AsyncSession, job: JobExecution, result: JobResult) -> JobExecution:
    """Record the pipeline outcome as the execution's terminal state.

    Args:
        session: Database session.
        job: The running execution.
        result: Outcome reported by the chunk pipeline.

    Returns:
        The updated, now immutable, JobExecution.
    """
    if result.failures:
        target, exit_code = BatchStatus.FAILED, ExitCode.FAILED
        description = describe_failures(result.failures)
    elif result.stopped:
        target, exit_code = BatchStatus.STOPPED, ExitCode.STOPPED
        description = f"Stopped after {result.commit_count} committed chunks"
    else:
        target, exit_code = BatchStatus.COMPLETED, ExitCode.COMPLETED
        description = ""

    job.status = check_transition(job.status, target).value
    job.exit_code = exit_code.value
    job.exit_description = description
    job.read_count = result.read_count
    job.write_count = result.write_count
    job.commit_count = result.commit_count
    job.end_time = datetime.now(UTC)
    await session.commit()
    logger.info(f"Job execution {job.id} finished with {job.status}: {job.write_count} rows written")
    return job


async def fail_job(session: AsyncSession, job: JobExecution, exc: BaseException) -> JobExecution:
    """Mark an execution FAILED for an error raised outside the pipeline."""
    job.status = check_transition(job.status, BatchStatus.FAILED).value
    job.exit_code = ExitCode.FAILED.value
    job.exit_description = describe_failures([exc])
    job.end_time = datetime.now(UTC)
    await session.commit()
    return job


async def get_job_execution(session: AsyncSession, job_id: int) -> JobExecution | None:
    """Get a job execution by ID."""
    result = await session.execute(select(JobExecution).where(JobExecution.id == job_id))
    return result.scalar_one_or_none()


async def list_job_executions(
    session: AsyncSession,
    *,
    status_filter: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[JobExecution], int]:
    """List job executions, newest first, with optional status filter.

    Args:
        session: Database session.
        status_filter: Optional status to filter by.
        page: Page number.
        page_size: Items per page.

    Returns:
        Tuple of (executions, total count).
    """
    query = select(JobExecution)
    count_query = select(func.count(JobExecution.id))

    if status_filter:
        query = query.where(JobExecution.status == status_filter)
        count_query = count_query.where(JobExecution.status == status_filter)

    total = (await session.execute(count_query)).scalar_one()
    offset = (page - 1) * page_size
    query = query.order_by(JobExecution.id.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    jobs = list(result.scalars().all())

    return jobs, total
