"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from batch_export.models.job_execution import JobExecution

__all__ = [
    "JobExecution",
]
