"""Tests for the keyset-paginated reader."""

import math

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from batch_export.lib.export_engine.errors import ConfigurationError, DataAccessError
from batch_export.lib.export_engine.query import resolve
from batch_export.lib.export_engine.reader import PagingReader, build_page_query, open_reader

BASE_QUERY = "SELECT id, name, email FROM users"


class TestBuildPageQuery:
    """Tests for build_page_query."""

    def test_first_page_without_filter(self) -> None:
        spec = resolve(BASE_QUERY, None, "")
        assert build_page_query(spec, after_key=False) == (
            "SELECT id, name, email FROM users ORDER BY id ASC LIMIT :page_size"
        )

    def test_next_page_with_filter(self) -> None:
        spec = resolve(BASE_QUERY, "active = 1 OR id < 3", "")
        assert build_page_query(spec, after_key=True) == (
            "SELECT id, name, email FROM users WHERE (active = 1 OR id < 3) AND id > :last_key "
            "ORDER BY id ASC LIMIT :page_size"
        )

    def test_colons_in_fragments_are_escaped(self) -> None:
        spec = resolve("SELECT id, created::date FROM users", "name = ':vip'", "")
        assert build_page_query(spec, after_key=True) == (
            "SELECT id, created\\:\\:date FROM users WHERE (name = '\\:vip') AND id > :last_key "
            "ORDER BY id ASC LIMIT :page_size"
        )


class TestPagingReader:
    """Tests for PagingReader against a SQLite source."""

    def test_rejects_non_positive_page_size(self, async_engine: AsyncEngine) -> None:
        with pytest.raises(ConfigurationError):
            PagingReader(async_engine, resolve(BASE_QUERY, None, ""), 0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total", [0, 1, 3, 4, 30])
    async def test_reads_every_row_once_in_order(self, async_engine: AsyncEngine, seed_users, total: int) -> None:
        await seed_users(total)
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 3)

        ids = [row["id"] async for row in reader]

        assert ids == list(range(1, total + 1))
        assert reader.read_count == total
        assert reader.page_count == math.ceil(total / 3)
        assert reader.exhausted

    @pytest.mark.asyncio
    async def test_exact_multiple_issues_one_empty_query(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(6)
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 3)

        rows = [row async for row in reader]

        assert len(rows) == 6
        assert reader.page_count == 2
        assert reader.query_count == 3

    @pytest.mark.asyncio
    async def test_filter_is_applied(self, async_engine: AsyncEngine, insert_users) -> None:
        await insert_users([(1, "a", None), (2, "b", None)], active=1)
        await insert_users([(3, "c", None), (4, "d", None)], active=0)
        reader = open_reader(async_engine, resolve(BASE_QUERY, "active = 1", ""), 1)

        names = [row["name"] async for row in reader]

        assert names == ["a", "b"]

    @pytest.mark.asyncio
    async def test_sparse_keys(self, async_engine: AsyncEngine, insert_users) -> None:
        await insert_users([(5, "e", None), (50, "f", None), (500, "g", None), (7, "h", None)])
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 2)

        ids = [row["id"] async for row in reader]

        assert ids == [5, 7, 50, 500]

    @pytest.mark.asyncio
    async def test_read_page_returns_bounded_pages(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(5)
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 2)

        sizes = []
        while not reader.exhausted:
            sizes.append(len(await reader.read_page()))

        assert sizes == [2, 2, 1]
        assert await reader.read_page() == []

    @pytest.mark.asyncio
    async def test_read_returns_none_at_end(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(1)
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 10)

        first = await reader.read()
        assert first is not None
        assert first == {"id": 1, "name": "user1", "email": "user1@example.com"}
        assert await reader.read() is None
        assert await reader.read() is None

    @pytest.mark.asyncio
    async def test_bad_filter_raises_data_access_error(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(2)
        reader = open_reader(async_engine, resolve(BASE_QUERY, "no_such_column = 1", ""), 10)

        with pytest.raises(DataAccessError, match="Page query failed"):
            await reader.read()
        assert reader.exhausted

    @pytest.mark.asyncio
    async def test_missing_sort_key_column_raises(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(2)
        reader = open_reader(async_engine, resolve("SELECT name FROM users", None, ""), 10)

        with pytest.raises(DataAccessError, match="Sort key column"):
            await reader.read()

    @pytest.mark.asyncio
    async def test_rows_inserted_behind_the_cursor_are_skipped(
        self, async_engine: AsyncEngine, insert_users
    ) -> None:
        await insert_users([(10, "a", None), (20, "b", None), (30, "c", None)])
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 2)

        first_page = await reader.read_page()
        await insert_users([(15, "late", None)])
        rest = [row["id"] async for row in reader]

        assert [row["id"] for row in first_page] == [10, 20]
        assert rest == [30]

    @pytest.mark.asyncio
    async def test_colon_inside_string_literal(self, async_engine: AsyncEngine, insert_users) -> None:
        await insert_users([(1, ":vip", None), (2, "plain", None)])
        reader = open_reader(async_engine, resolve(BASE_QUERY, "name = ':vip'", ""), 10)

        ids = [row["id"] async for row in reader]

        assert ids == [1]

    @pytest.mark.asyncio
    async def test_paging_parameter_names_in_literals_stay_literal(
        self, async_engine: AsyncEngine, insert_users
    ) -> None:
        await insert_users([(1, ":page_size", None), (2, ":last_key", None), (3, "other", None)])
        reader = open_reader(
            async_engine, resolve(BASE_QUERY, "name IN (':page_size', ':last_key')", ""), 1
        )

        names = [row["name"] async for row in reader]

        assert names == [":page_size", ":last_key"]

    @pytest.mark.asyncio
    async def test_has_next_does_not_consume(self, async_engine: AsyncEngine, seed_users) -> None:
        await seed_users(3)
        reader = open_reader(async_engine, resolve(BASE_QUERY, None, ""), 3)

        assert await reader.has_next()
        assert [row["id"] async for row in reader] == [1, 2, 3]
        assert not await reader.has_next()
        assert reader.query_count == 2
