"""Export engine library: query building, paging, writing, and the chunk pipeline.

Public API:
    - resolve / QuerySpec: derive the per-job query from the base query
    - PagingReader / open_reader: keyset-paginated row source
    - prepare / DelimitedFileWriter / OutputTarget: tab-delimited output
    - run_pipeline / JobResult: chunked read-write execution
    - BatchStatus / check_transition: job status state machine
"""

from batch_export.lib.export_engine.errors import (
    ConfigurationError,
    DataAccessError,
    ExportError,
    InvalidTransitionError,
    WriteError,
)
from batch_export.lib.export_engine.fields import DEFAULT_FIELDS, FieldExtractor
from batch_export.lib.export_engine.listener import JobExecutionListener, LoggingJobListener
from batch_export.lib.export_engine.pipeline import ChunkOutcome, JobResult, run_pipeline
from batch_export.lib.export_engine.query import (
    QuerySpec,
    SortKey,
    build_full_query,
    extract_from_clause,
    extract_select_clause,
    resolve,
    resolve_where_clause,
)
from batch_export.lib.export_engine.reader import PagingReader, open_reader
from batch_export.lib.export_engine.status import TERMINAL_STATUSES, BatchStatus, ExitCode, check_transition
from batch_export.lib.export_engine.writer import (
    DelimitedFileWriter,
    OutputTarget,
    build_output_target,
    prepare,
    resolve_filename,
)

__all__ = [
    "DEFAULT_FIELDS",
    "TERMINAL_STATUSES",
    "BatchStatus",
    "ChunkOutcome",
    "ConfigurationError",
    "DataAccessError",
    "DelimitedFileWriter",
    "ExitCode",
    "ExportError",
    "FieldExtractor",
    "InvalidTransitionError",
    "JobExecutionListener",
    "JobResult",
    "LoggingJobListener",
    "OutputTarget",
    "PagingReader",
    "QuerySpec",
    "SortKey",
    "WriteError",
    "build_full_query",
    "build_output_target",
    "check_transition",
    "extract_from_clause",
    "extract_select_clause",
    "open_reader",
    "prepare",
    "resolve",
    "resolve_filename",
    "resolve_where_clause",
    "run_pipeline",
]
