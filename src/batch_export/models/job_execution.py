"""JobExecution model: one tracked run of the export pipeline."""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from batch_export.models.base import Base


class JobExecution(Base):
    """A single launch of the export job.

    Every launch gets its own row, even when the filter and filename repeat
    a previous one; ``parameters["run.id"]`` carries the per-launch token.
    """

    __tablename__ = "job_executions"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    job_name: Mapped[str] = mapped_column(String(100), nullable=False, default="export-job")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="STARTING", server_default="STARTING")
    parameters: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)

    # Run counters
    read_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    write_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    commit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Exit status
    exit_code: Mapped[str] = mapped_column(String(20), nullable=False, default="UNKNOWN")
    exit_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    create_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_job_executions_status", "status"),
        Index("ix_job_executions_create_time", "create_time"),
    )
