"""Delimited output writer with chunk-aligned commits.

Rows are buffered per chunk and appended in a single write on ``commit``.
The byte offset of the last successful commit is remembered, so a failed
commit truncates the file back to it: a chunk is either fully on disk or not
at all, and earlier chunks are never rewritten.
"""

import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import IO, Any, Self

from loguru import logger

from batch_export.lib.export_engine.errors import ConfigurationError, WriteError
from batch_export.lib.export_engine.fields import FieldExtractor

TIMESTAMP_TOKEN = "{timestamp}"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
DEFAULT_DIRECTORY = "target"
DELIMITER = "\t"


@dataclass(frozen=True)
class OutputTarget:
    """Where and how one job writes its output."""

    directory: Path
    filename: str
    include_header: bool = True
    delimiter: str = DELIMITER

    @property
    def path(self) -> Path:
        return self.directory / self.filename


def resolve_filename(filename: str | None, pattern: str | None, now: datetime | None = None) -> str:
    """Return the explicit filename, or the pattern with its timestamp filled in.

    Args:
        filename: Caller-supplied name; wins when non-blank.
        pattern: Configured pattern, may contain ``{timestamp}``.
        now: Clock override for the timestamp.

    Returns:
        A bare, non-empty file name.

    Raises:
        ConfigurationError: If no name can be resolved or it contains path
            components.
    """
    if filename is not None and filename.strip():
        resolved = filename.strip()
    else:
        stamp = (now or datetime.now(UTC)).strftime(TIMESTAMP_FORMAT)
        resolved = (pattern or "").replace(TIMESTAMP_TOKEN, stamp).strip()

    if not resolved:
        msg = "Output filename is empty and no filename pattern is configured"
        raise ConfigurationError(msg)
    if resolved in (".", "..") or Path(resolved).name != resolved:
        msg = f"Output filename must not contain path components: {resolved!r}"
        raise ConfigurationError(msg)
    return resolved


def build_output_target(
    directory: str | Path | None,
    filename: str | None,
    filename_pattern: str | None,
    *,
    include_header: bool = True,
    now: datetime | None = None,
) -> OutputTarget:
    """Resolve an OutputTarget from configuration and the caller's filename."""
    dir_value = str(directory).strip() if directory is not None else ""
    return OutputTarget(
        directory=Path(dir_value or DEFAULT_DIRECTORY),
        filename=resolve_filename(filename, filename_pattern, now),
        include_header=include_header,
    )


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class DelimitedFileWriter:
    """Append-only writer for one output target.

    Lifecycle: ``open`` -> ``write_header`` -> (``write_row``* -> ``commit``)*
    -> ``close``. Use it as a context manager so ``close`` runs on every exit
    path.
    """

    def __init__(self, target: OutputTarget, extractor: FieldExtractor | None = None) -> None:
        self.target = target
        self.extractor = extractor or FieldExtractor()
        self._file: IO[bytes] | None = None
        self._pending: list[str] = []
        self._committed_offset = 0
        self._header_written = False
        self._closed = False
        self.rows_written = 0
        self.commit_count = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def open(self) -> None:
        """Start writing, truncating whatever the file held before."""
        if self._file is not None:
            return
        if self._closed:
            msg = f"Writer for {self.target.path} is already closed"
            raise WriteError(msg)
        try:
            self._file = self.target.path.open("wb")
        except OSError as exc:
            msg = f"Cannot open output file {self.target.path}: {exc}"
            raise WriteError(msg) from exc
        self._committed_offset = 0

    def _require_open(self) -> IO[bytes]:
        if self._file is None:
            msg = f"Writer for {self.target.path} is not open"
            raise WriteError(msg)
        return self._file

    def write_header(self) -> None:
        """Emit the header line once, before any data row, if configured."""
        if not self.target.include_header or self._header_written:
            return
        if self.rows_written or self._pending:
            msg = "Header must be written before any data row"
            raise WriteError(msg)
        self._append(self.extractor.header_line(self.target.delimiter) + "\n")
        self._header_written = True

    def write_row(self, row: dict[str, Any]) -> None:
        """Buffer one row into the current chunk."""
        self._require_open()
        try:
            values = self.extractor.extract(row)
        except KeyError as exc:
            msg = f"Cannot extract fields from row: {exc}"
            raise WriteError(msg) from exc
        self._pending.append(self.target.delimiter.join(_format_value(v) for v in values) + "\n")

    def commit(self) -> int:
        """Durably append the buffered chunk.

        Returns:
            Number of rows committed.

        Raises:
            WriteError: If the chunk could not be written; the file is rolled
                back to the previous commit.
        """
        count = len(self._pending)
        if count:
            self._append("".join(self._pending))
        self._pending.clear()
        self.rows_written += count
        self.commit_count += 1
        return count

    def rollback(self) -> None:
        """Discard the buffered chunk."""
        self._pending.clear()

    def _append(self, data: str) -> None:
        handle = self._require_open()
        try:
            handle.write(data.encode("utf-8"))
            handle.flush()
            os.fsync(handle.fileno())
        except OSError as exc:
            self._pending.clear()
            self._truncate_to_commit(handle)
            msg = f"Failed writing to {self.target.path}: {exc}"
            raise WriteError(msg) from exc
        self._committed_offset = handle.tell()

    def _truncate_to_commit(self, handle: IO[bytes]) -> None:
        try:
            handle.seek(self._committed_offset)
            handle.truncate()
        except OSError:
            logger.exception(f"Could not roll back {self.target.path} to offset {self._committed_offset}")

    def close(self) -> None:
        """Flush and release the file handle; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._pending:
            logger.warning(f"Discarding {len(self._pending)} uncommitted rows for {self.target.path}")
            self._pending.clear()
        if self._file is None:
            return
        handle, self._file = self._file, None
        try:
            handle.flush()
        except OSError as exc:
            msg = f"Failed flushing {self.target.path}: {exc}"
            raise WriteError(msg) from exc
        finally:
            handle.close()

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def prepare(target: OutputTarget, extractor: FieldExtractor | None = None) -> DelimitedFileWriter:
    """Make sure the target can be written and return a fresh writer for it.

    Creates the directory tree and an empty file when missing. An existing
    file is left untouched until the writer is opened, so calling this twice
    is harmless.

    Raises:
        ConfigurationError: If the directory or file cannot be created, or
            the file is not writable.
    """
    path = target.path
    try:
        target.directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Failed to create output directory: {target.directory}"
        raise ConfigurationError(msg) from exc

    if path.is_dir():
        msg = f"Output path is a directory: {path}"
        raise ConfigurationError(msg)
    try:
        path.touch(exist_ok=True)
    except OSError as exc:
        msg = f"Failed to create output file: {path}"
        raise ConfigurationError(msg) from exc
    if not os.access(path, os.W_OK):
        msg = f"Output file is not writable: {path}"
        raise ConfigurationError(msg)

    logger.debug(f"Prepared output file {path}")
    return DelimitedFileWriter(target, extractor)
