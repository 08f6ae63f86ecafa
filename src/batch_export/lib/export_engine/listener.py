"""Job lifecycle callbacks invoked by the execution tracker."""

from typing import Any, Protocol

from loguru import logger


class JobExecutionListener(Protocol):
    """Observer of job transitions.

    ``before_job`` runs right after the STARTING -> STARTED transition,
    ``after_job`` right after the terminal one.
    """

    def before_job(self, execution: Any) -> None: ...

    def after_job(self, execution: Any, failures: list[BaseException]) -> None: ...


class LoggingJobListener:
    """Logs job start, parameters, and the outcome of every run.

    Records are bound with ``json_output`` so the structured sink carries the
    job lifecycle alongside the human-readable one.
    """

    def before_job(self, execution: Any) -> None:
        log = logger.bind(json_output=True, job_id=execution.id, status=execution.status)
        log.info(f"Job starting: export-job #{execution.id}")
        for key, value in (execution.parameters or {}).items():
            log.info(f"Job parameter: {key} = {value}")

    def after_job(self, execution: Any, failures: list[BaseException]) -> None:
        log = logger.bind(json_output=True, job_id=execution.id, status=execution.status)
        if execution.status == "COMPLETED":
            log.info(f"Job #{execution.id} completed successfully: {execution.write_count} rows written")
        elif execution.status == "FAILED":
            log.error(f"Job #{execution.id} failed with exceptions:")
            for exc in failures:
                log.opt(exception=exc).error(" ")
        else:
            log.warning(f"Job #{execution.id} ended with status {execution.status}")
