"""Batch export Pydantic v2 response schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from batch_export.models.job_execution import JobExecution
from batch_export.schemas.common import CamelModel, PaginationMeta


class JobLaunchResponse(CamelModel):
    """Returned by a successful launch."""

    job_id: int
    status: str
    start_time: datetime | None = None

    @classmethod
    def from_job(cls, job: JobExecution) -> "JobLaunchResponse":
        return cls(job_id=job.id, status=job.status, start_time=job.start_time)


class JobStatusResponse(CamelModel):
    """Status of one job execution."""

    job_id: int
    status: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: str | None = None
    exit_description: str | None = None

    @classmethod
    def from_job(cls, job: JobExecution) -> "JobStatusResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            start_time=job.start_time,
            end_time=job.end_time,
            exit_code=job.exit_code,
            exit_description=job.exit_description,
        )


class JobExecutionDetail(JobStatusResponse):
    """Status plus parameters and run counters, used in job listings."""

    parameters: dict[str, Any] = Field(default_factory=dict)
    read_count: int = 0
    write_count: int = 0
    commit_count: int = 0
    output_path: str | None = None
    create_time: datetime | None = None

    @classmethod
    def from_job(cls, job: JobExecution) -> "JobExecutionDetail":
        return cls(
            job_id=job.id,
            status=job.status,
            start_time=job.start_time,
            end_time=job.end_time,
            exit_code=job.exit_code,
            exit_description=job.exit_description,
            parameters=job.parameters or {},
            read_count=job.read_count or 0,
            write_count=job.write_count or 0,
            commit_count=job.commit_count or 0,
            output_path=job.output_path,
            create_time=job.create_time,
        )


class PaginatedJobExecutionResponse(CamelModel):
    """Paginated list of job executions."""

    items: list[JobExecutionDetail]
    pagination: PaginationMeta
