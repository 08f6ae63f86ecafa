"""Chunk pipeline: bounded read/write cycles committed one chunk at a time."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from batch_export.lib.export_engine.errors import ConfigurationError
from batch_export.lib.export_engine.reader import PagingReader
from batch_export.lib.export_engine.writer import DelimitedFileWriter


@dataclass
class ChunkOutcome:
    """Counts for one chunk and the failure that ended it, if any."""

    index: int
    read_count: int = 0
    write_count: int = 0
    error: BaseException | None = None

    @property
    def committed(self) -> bool:
        return self.error is None


@dataclass
class JobResult:
    """Aggregate outcome of one pipeline run."""

    read_count: int = 0
    write_count: int = 0
    chunks: list[ChunkOutcome] = field(default_factory=list)
    failures: list[BaseException] = field(default_factory=list)
    stopped: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failures and not self.stopped

    @property
    def commit_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.committed)


async def run_pipeline(
    reader: PagingReader,
    writer: DelimitedFileWriter,
    chunk_size: int,
    *,
    should_stop: Callable[[], bool] | None = None,
    result: JobResult | None = None,
) -> JobResult:
    """Drive the read-write loop until the reader runs dry or something fails.

    Each chunk of up to ``chunk_size`` rows is buffered in the writer and
    committed as one unit in a worker thread. A failure rolls back the
    current chunk and ends the run; chunks committed before it stay in the
    file. ``should_stop`` is only consulted between chunks, and only once the
    reader still has rows to give.

    Args:
        reader: Source of rows.
        writer: Destination, already prepared (opened here if needed).
        chunk_size: Maximum rows per committed chunk.
        should_stop: Optional cancellation probe.
        result: Optional JobResult to accumulate into. The caller keeps the
            committed counts even when the run is cancelled.

    Returns:
        The JobResult; reader and writer errors are captured, not raised.

    Raises:
        ConfigurationError: If ``chunk_size`` is not positive.
    """
    if chunk_size <= 0:
        msg = f"Chunk size must be positive, got {chunk_size}"
        raise ConfigurationError(msg)

    if result is None:
        result = JobResult()
    try:
        writer.open()
        writer.write_header()
    except Exception as exc:
        logger.error(f"Could not start writing {writer.target.path}: {exc}")
        result.failures.append(exc)
        _close_writer(writer, result)
        return result

    try:
        await _run_chunks(reader, writer, chunk_size, result, should_stop)
    finally:
        _close_writer(writer, result)
    return result


def _close_writer(writer: DelimitedFileWriter, result: JobResult) -> None:
    try:
        writer.close()
    except Exception as exc:
        logger.error(f"Closing {writer.target.path} failed: {exc}")
        result.failures.append(exc)


async def _commit(writer: DelimitedFileWriter) -> int:
    """Commit the buffered chunk off the event loop.

    A cancelled caller still waits for the write to land, so the file is
    never closed underneath it.
    """
    commit = asyncio.ensure_future(asyncio.to_thread(writer.commit))
    try:
        return await asyncio.shield(commit)
    except asyncio.CancelledError:
        await asyncio.wait([commit])
        raise


def _record(result: JobResult, chunk: ChunkOutcome) -> None:
    result.read_count += chunk.read_count
    result.write_count += chunk.write_count
    result.chunks.append(chunk)


async def _stop_requested(
    reader: PagingReader,
    result: JobResult,
    should_stop: Callable[[], bool] | None,
    index: int,
) -> bool:
    if should_stop is None or not should_stop():
        return False
    if not await reader.has_next():
        return False
    logger.info(f"Stop requested; ending after {index} chunks")
    result.stopped = True
    return True


async def _run_chunks(
    reader: PagingReader,
    writer: DelimitedFileWriter,
    chunk_size: int,
    result: JobResult,
    should_stop: Callable[[], bool] | None,
) -> None:
    index = 0
    while True:
        chunk = ChunkOutcome(index=index)
        try:
            if await _stop_requested(reader, result, should_stop, index):
                break
            while chunk.read_count < chunk_size:
                row = await reader.read()
                if row is None:
                    break
                chunk.read_count += 1
                writer.write_row(row)
            if chunk.read_count == 0:
                break
            chunk.write_count = await _commit(writer)
        except asyncio.CancelledError as exc:
            writer.rollback()
            # the commit may have landed before the cancellation did
            chunk.write_count = writer.rows_written - result.write_count
            if chunk.write_count == 0:
                chunk.error = exc
            _record(result, chunk)
            logger.warning(f"Export cancelled during chunk {index}")
            raise
        except Exception as exc:
            writer.rollback()
            chunk.error = exc
            _record(result, chunk)
            result.failures.append(exc)
            logger.error(f"Chunk {index} failed after {chunk.read_count} rows read: {exc}")
            break

        _record(result, chunk)
        logger.debug(f"Committed chunk {index}: {chunk.write_count} rows")
        index += 1

        if chunk.read_count < chunk_size:
            break
