"""Job execution tracker: launches export runs and answers status queries.

The tracker is the only owner of JobExecution records. A launch resolves the
query and output target up front (configuration errors surface to the
caller and no record is written), records STARTING then STARTED, and hands
the chunk pipeline to the background runner. The caller gets the STARTED
snapshot back immediately; completion is observed by polling ``status``.
"""

import asyncio
import threading
import time
from collections.abc import Iterable
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from batch_export.core.background import BackgroundTaskRunner, task_runner
from batch_export.core.config import Settings
from batch_export.lib.export_engine import (
    DelimitedFileWriter,
    FieldExtractor,
    InvalidTransitionError,
    JobExecutionListener,
    JobResult,
    LoggingJobListener,
    PagingReader,
    build_output_target,
    open_reader,
    prepare,
    resolve,
    run_pipeline,
)
from batch_export.models.job_execution import JobExecution
from batch_export.services.job_service import (
    create_job_execution,
    fail_job,
    finalize_job,
    get_job_execution,
    mark_started,
)

_token_lock = threading.Lock()
_last_token = 0


def next_run_token() -> int:
    """Return a strictly increasing nanosecond timestamp for ``run.id``."""
    global _last_token  # noqa: PLW0603
    with _token_lock:
        _last_token = max(time.time_ns(), _last_token + 1)
        return _last_token


class JobExecutionTracker:
    """Launches export jobs and serves their execution records."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        source_engine: AsyncEngine,
        settings: Settings,
        *,
        runner: BackgroundTaskRunner | None = None,
        listeners: Iterable[JobExecutionListener] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._source_engine = source_engine
        self._settings = settings
        self._runner = runner or task_runner
        self._listeners = list(listeners) if listeners is not None else [LoggingJobListener()]
        self._stop_requests: set[int] = set()
        self._active: set[int] = set()

    async def launch(self, where_clause: str | None = None, filename: str | None = None) -> JobExecution:
        """Start a new export run.

        Args:
            where_clause: Optional filter overriding the configured default.
            filename: Optional output filename overriding the pattern.

        Returns:
            The execution record in STARTED.

        Raises:
            ConfigurationError: If the base query or output target is unusable.
        """
        settings = self._settings
        query_spec = resolve(
            settings.batch_base_query,
            where_clause,
            settings.batch_default_where_clause,
            settings.batch_sort_key,
        )
        target = build_output_target(
            settings.output_directory,
            filename,
            settings.output_filename_pattern,
            include_header=settings.output_include_header,
        )
        writer = prepare(target, FieldExtractor(settings.batch_field_list))
        reader = open_reader(self._source_engine, query_spec, settings.batch_page_size)

        parameters: dict[str, Any] = {
            "whereClause": query_spec.where_clause,
            "filename": target.filename,
            "run.id": next_run_token(),
        }
        logger.info(f"Launching export job with whereClause: {where_clause!r}, filename: {filename!r}")

        async with self._session_factory() as session:
            job = await create_job_execution(session, parameters=parameters, output_path=str(target.path))
            job = await mark_started(session, job)
            self._active.add(job.id)
            self._notify_before(job)

            try:
                self._runner.submit_task(str(job.id), self._execute(job.id, reader, writer))
            except Exception as exc:
                self._active.discard(job.id)
                await fail_job(session, job, exc)
                self._notify_after(job, [exc])
                raise

        logger.info(f"Job {job.id} launched with status: {job.status}")
        return job

    async def _execute(self, job_id: int, reader: PagingReader, writer: DelimitedFileWriter) -> None:
        """Run the pipeline for one job and record its terminal state."""
        result = JobResult()
        try:
            await run_pipeline(
                reader,
                writer,
                self._settings.batch_chunk_size,
                should_stop=lambda: job_id in self._stop_requests,
                result=result,
            )
        except asyncio.CancelledError:
            result.stopped = True
            logger.warning(f"Job execution {job_id} was cancelled")
            await self._finalize(job_id, result)
            raise
        except Exception as exc:
            result.failures.append(exc)
        finally:
            self._stop_requests.discard(job_id)

        await self._finalize(job_id, result)

    async def _finalize(self, job_id: int, result: JobResult) -> None:
        """Record the terminal state, falling back to FAILED if that write fails."""
        self._active.discard(job_id)
        failures = result.failures
        try:
            async with self._session_factory() as session:
                job = await get_job_execution(session, job_id)
                if job is None:
                    logger.error(f"Job execution {job_id} vanished before it could be finalized")
                    return
                job = await finalize_job(session, job, result)
        except Exception as exc:
            logger.exception(f"Could not record the outcome of job execution {job_id}")
            failures = [*result.failures, exc]
            async with self._session_factory() as session:
                job = await get_job_execution(session, job_id)
                if job is None:
                    return
                job = await fail_job(session, job, exc)
        self._notify_after(job, failures)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs and record every one of them as STOPPED."""
        await self._runner.cancel_all()
        for job_id in sorted(self._active):
            await self._finalize(job_id, JobResult(stopped=True))

    async def status(self, job_id: int) -> JobExecution | None:
        """Return the execution record, or None when the id is unknown."""
        async with self._session_factory() as session:
            return await get_job_execution(session, job_id)

    async def stop(self, job_id: int) -> JobExecution | None:
        """Request a running job to stop at its next chunk boundary.

        Returns:
            The current record, or None when the id is unknown.

        Raises:
            InvalidTransitionError: If the job already reached a terminal state.
        """
        job = await self.status(job_id)
        if job is None:
            return None
        if job.status not in ("STARTING", "STARTED") or not self._runner.is_running(str(job_id)):
            raise InvalidTransitionError(job.status, "STOPPED")
        self._stop_requests.add(job_id)
        logger.info(f"Stop requested for job execution {job_id}")
        return job

    async def wait(self, job_id: int) -> JobExecution | None:
        """Wait for a launched job to finish and return its final record."""
        await self._runner.wait(str(job_id))
        return await self.status(job_id)

    def _notify_before(self, job: JobExecution) -> None:
        for listener in self._listeners:
            try:
                listener.before_job(job)
            except Exception:
                logger.exception(f"Listener {type(listener).__name__}.before_job failed")

    def _notify_after(self, job: JobExecution, failures: list[BaseException]) -> None:
        for listener in self._listeners:
            try:
                listener.after_job(job, failures)
            except Exception:
                logger.exception(f"Listener {type(listener).__name__}.after_job failed")
