"""Job execution status taxonomy and its state machine."""

import enum

from batch_export.lib.export_engine.errors import InvalidTransitionError


class BatchStatus(enum.StrEnum):
    """Lifecycle status of a job execution."""

    STARTING = "STARTING"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class ExitCode(enum.StrEnum):
    """Exit codes recorded on terminal executions."""

    UNKNOWN = "UNKNOWN"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


TERMINAL_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED, BatchStatus.STOPPED})

# STOPPED is only reachable through an explicit stop request
_ALLOWED: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.STARTING: frozenset({BatchStatus.STARTED, BatchStatus.FAILED}),
    BatchStatus.STARTED: frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED, BatchStatus.STOPPED}),
    BatchStatus.COMPLETED: frozenset(),
    BatchStatus.FAILED: frozenset(),
    BatchStatus.STOPPED: frozenset(),
}


def check_transition(current: str, target: str) -> BatchStatus:
    """Validate a status change.

    Args:
        current: The execution's present status.
        target: The requested status.

    Returns:
        The target as a BatchStatus.

    Raises:
        InvalidTransitionError: If the edge is not part of the state machine.
    """
    current_status = BatchStatus(current)
    target_status = BatchStatus(target)
    if target_status not in _ALLOWED[current_status]:
        raise InvalidTransitionError(current_status.value, target_status.value)
    return target_status
