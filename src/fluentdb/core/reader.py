"""Row access and the row fetch loop primitives.

``Reader`` and ``AsyncReader`` wrap the cursor that holds a command's result
set. They turn driver tuples into ``Row`` objects and know whether the result
set has rows at all, which is what ``Execution.read`` uses to return ``None``
for an empty result.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

from fluentdb.core.types import maybe_await

_NOT_FETCHED = object()


class Row(Mapping[str, Any]):
    """
    One fetched row.

    Columns are addressable by position (``row[0]``) and by name
    (``row["name"]``). Name lookup falls back to a case-insensitive match, so
    Oracle's upper-case column names can be read with lower-case keys.
    """

    __slots__ = ("_values", "_columns", "_index")

    def __init__(self, values: Sequence[Any], columns: Sequence[str], index: dict[str, int]):
        self._values = tuple(values)
        self._columns = tuple(columns)
        self._index = index

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, int):
            return self._values[key]
        position = self._index.get(key)
        if position is None:
            position = self._index.get(key.lower())
        if position is None:
            raise KeyError(key)
        return self._values[position]

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    def as_tuple(self) -> tuple[Any, ...]:
        return self._values

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self._columns, self._values))

    def __repr__(self) -> str:
        return f"Row({self.to_dict()!r})"


def _columns(cursor: Any) -> tuple[str, ...]:
    description = getattr(cursor, "description", None)
    if not description:
        return ()
    return tuple(str(column[0]) for column in description)


def _index(columns: Sequence[str]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, column in enumerate(columns):
        index.setdefault(column, position)
        index.setdefault(column.lower(), position)
    return index


class _BaseReader:
    def __init__(self, cursor: Any, *, on_close: Callable[[], Any] | None = None):
        self._cursor = cursor
        self._on_close = on_close
        self._columns = _columns(cursor) if cursor is not None else ()
        self._index = _index(self._columns)
        self._peeked: Any = _NOT_FETCHED
        self._closed = False

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def has_result_set(self) -> bool:
        """Whether the command produced a result set (a description)."""
        return bool(self._columns)

    def _row(self, values: Any) -> Row | None:
        if values is None:
            return None
        return Row(values, self._columns, self._index)


class Reader(_BaseReader):
    """Synchronous reader over a DB-API cursor."""

    @property
    def has_rows(self) -> bool:
        """Whether at least one row is available; fetches ahead by one row."""
        if not self.has_result_set or self._closed:
            return False
        if self._peeked is _NOT_FETCHED:
            self._peeked = self._cursor.fetchone()
        return self._peeked is not None

    def fetch(self) -> Row | None:
        """Next row, or ``None`` when the result set is exhausted."""
        if not self.has_result_set or self._closed:
            return None
        if self._peeked is not _NOT_FETCHED:
            values, self._peeked = self._peeked, _NOT_FETCHED
        else:
            values = self._cursor.fetchone()
        return self._row(values)

    def __iter__(self) -> Iterator[Row]:
        while (row := self.fetch()) is not None:
            yield row

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()
        elif self._cursor is not None:
            self._cursor.close()

    def __enter__(self) -> Reader:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class AsyncReader(_BaseReader):
    """Asynchronous reader; works over async cursors and, inline, over sync ones."""

    async def has_rows(self) -> bool:
        if not self.has_result_set or self._closed:
            return False
        if self._peeked is _NOT_FETCHED:
            self._peeked = await maybe_await(self._cursor.fetchone())
        return self._peeked is not None

    async def fetch(self) -> Row | None:
        if not self.has_result_set or self._closed:
            return None
        if self._peeked is not _NOT_FETCHED:
            values, self._peeked = self._peeked, _NOT_FETCHED
        else:
            values = await maybe_await(self._cursor.fetchone())
        return self._row(values)

    def __aiter__(self) -> AsyncReader:
        return self

    async def __anext__(self) -> Row:
        row = await self.fetch()
        if row is None:
            raise StopAsyncIteration
        return row

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await maybe_await(self._on_close())
        elif self._cursor is not None:
            await maybe_await(self._cursor.close())

    async def __aenter__(self) -> AsyncReader:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


__all__ = [
    "Row",
    "Reader",
    "AsyncReader",
]
