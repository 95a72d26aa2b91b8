"""Tests for ``fluentdb.core.reader`` -- rows and readers over DB-API cursors."""

from __future__ import annotations

import sqlite3

import pytest

from fluentdb.core.reader import AsyncReader, Reader


@pytest.fixture
def cursor(db_path):
    conn = sqlite3.connect(db_path)
    cursor = conn.execute("SELECT id, name FROM users ORDER BY id")
    yield cursor
    conn.close()


class TestReader:
    def test_iterates_rows(self, cursor):
        with Reader(cursor) as reader:
            assert reader.columns == ("id", "name")
            assert reader.has_rows is True
            assert [row.as_tuple() for row in reader] == [(1, "ada"), (2, "grace"), (3, "linus")]
            assert reader.fetch() is None
        assert reader.is_closed is True

    def test_has_rows_does_not_lose_first_row(self, cursor):
        reader = Reader(cursor)
        assert reader.has_rows is True
        assert reader.has_rows is True
        assert reader.fetch()["name"] == "ada"
        reader.close()

    def test_statement_without_result_set(self, db_path):
        conn = sqlite3.connect(db_path)
        try:
            reader = Reader(conn.execute("UPDATE users SET nickname = 'x'"))
            assert reader.has_result_set is False
            assert reader.has_rows is False
            assert reader.fetch() is None
        finally:
            conn.close()

    def test_close_callback_replaces_cursor_close(self, cursor):
        calls = []
        reader = Reader(cursor, on_close=lambda: calls.append("closed"))
        reader.close()
        reader.close()
        assert calls == ["closed"]


class TestAsyncReader:
    @pytest.mark.asyncio
    async def test_iterates_sync_cursor_inline(self, cursor):
        async with AsyncReader(cursor) as reader:
            assert await reader.has_rows() is True
            names = [row["name"] async for row in reader]
        assert names == ["ada", "grace", "linus"]
        assert reader.is_closed is True


class TestRow:
    def test_mapping_interface(self, cursor):
        row = Reader(cursor).fetch()
        assert row[1] == "ada"
        assert row["ID"] == 1
        assert dict(row) == {"id": 1, "name": "ada"}
        assert len(row) == 2
        assert "name" in row
        with pytest.raises(KeyError):
            row["missing"]
