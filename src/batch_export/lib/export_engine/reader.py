"""Keyset-paginated reader over the export data source.

Pages are fetched with one bounded query each, ordered ascending by the sort
key. Only the last seen key is kept between pages, so memory stays bounded by
the page size and a concurrent insert never shifts rows across page borders
the way OFFSET paging would.
"""

import re
from collections import deque
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from batch_export.lib.export_engine.errors import ConfigurationError, DataAccessError
from batch_export.lib.export_engine.query import QuerySpec

Row = dict[str, Any]

_UNESCAPED_COLON = re.compile(r"(?<!\\):")


def escape_colons(fragment: str) -> str:
    """Escape colons so ``text()`` keeps them literal instead of binding them."""
    return _UNESCAPED_COLON.sub(r"\\:", fragment)


def build_page_query(query_spec: QuerySpec, *, after_key: bool) -> str:
    """Render the SQL for one page.

    Args:
        query_spec: The resolved query.
        after_key: Whether to restrict to keys greater than ``:last_key``.

    Returns:
        SQL text with ``:page_size`` (and ``:last_key``) as its only bind
        parameters; colons in the configured and caller-supplied fragments
        are escaped.
    """
    key = query_spec.sort_key.column
    conditions = []
    if query_spec.where_clause:
        conditions.append(f"({escape_colons(query_spec.where_clause)})")
    if after_key:
        conditions.append(f"{key} > :last_key")

    sql = f"{escape_colons(query_spec.select_clause)} {escape_colons(query_spec.from_clause)}"
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    return sql + f" ORDER BY {key} {query_spec.sort_key.direction} LIMIT :page_size"


class PagingReader:
    """Lazy, forward-only sequence of rows read page by page.

    Iterate with ``async for``. Once exhausted, iterating again yields
    nothing; build a new reader to re-query from the start.
    """

    def __init__(self, engine: AsyncEngine, query_spec: QuerySpec, page_size: int) -> None:
        if page_size <= 0:
            msg = f"Page size must be positive, got {page_size}"
            raise ConfigurationError(msg)
        self._engine = engine
        self._query_spec = query_spec
        self._page_size = page_size
        self._key_name = query_spec.sort_key.column.rsplit(".", 1)[-1]
        self._last_key: Any = None
        self._buffer: deque[Row] = deque()
        self._exhausted = False
        self.query_count = 0
        self.page_count = 0
        self.read_count = 0

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    async def read_page(self) -> list[Row]:
        """Fetch the next page.

        Returns:
            Up to ``page_size`` rows; an empty list once exhausted.

        Raises:
            DataAccessError: If the page query fails or a row lacks the sort key.
        """
        if self._exhausted:
            return []

        after_key = self._last_key is not None
        params: dict[str, Any] = {"page_size": self._page_size}
        if after_key:
            params["last_key"] = self._last_key
        sql = build_page_query(self._query_spec, after_key=after_key)

        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(sql), params)
                rows = [dict(mapping) for mapping in result.mappings().all()]
        except SQLAlchemyError as exc:
            self._exhausted = True
            msg = f"Page query failed after key {self._last_key!r}: {exc}"
            raise DataAccessError(msg) from exc

        self.query_count += 1
        self.read_count += len(rows)

        if rows:
            self.page_count += 1
            try:
                self._last_key = rows[-1][self._key_name]
            except KeyError as exc:
                self._exhausted = True
                msg = f"Sort key column '{self._key_name}' missing from the select clause"
                raise DataAccessError(msg) from exc

        if len(rows) < self._page_size:
            self._exhausted = True

        logger.debug(f"Page query {self.query_count}: {len(rows)} rows (last key {self._last_key!r})")
        return rows

    async def read(self) -> Row | None:
        """Return the next row, fetching a new page when the buffer runs dry.

        Returns:
            The next row, or None at end of stream.
        """
        while not self._buffer:
            if self._exhausted:
                return None
            self._buffer.extend(await self.read_page())
        return self._buffer.popleft()

    async def has_next(self) -> bool:
        """Return whether another row is available, fetching a page if needed."""
        while not self._buffer:
            if self._exhausted:
                return False
            self._buffer.extend(await self.read_page())
        return True

    async def __aiter__(self) -> AsyncIterator[Row]:
        while (row := await self.read()) is not None:
            yield row


def open_reader(engine: AsyncEngine, query_spec: QuerySpec, page_size: int) -> PagingReader:
    """Construct a fresh reader for one job."""
    return PagingReader(engine, query_spec, page_size)
