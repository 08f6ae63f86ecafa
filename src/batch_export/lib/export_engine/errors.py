"""Error taxonomy for the export engine."""


class ExportError(Exception):
    """Base class for export engine failures."""


class ConfigurationError(ExportError):
    """Raised for a malformed base query or an unusable output location.

    Fatal at launch time and never retried.
    """


class DataAccessError(ExportError):
    """Raised when a page query cannot be executed against the data source."""


class WriteError(ExportError):
    """Raised when output cannot be written, flushed, or committed."""


class InvalidTransitionError(ExportError):
    """Raised when a job execution is moved along an illegal state edge."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Illegal job status transition {current} -> {target}")
        self.current = current
        self.target = target
