"""
Result sequences returned by searches.

Two variants, chosen by the backend:

- RestartableResults: backed by a list, can be traversed any number of times
- ForwardOnlyResults: backed by a database cursor, can be traversed once

Both answer ``get_first()`` without disturbing a later traversal. The
count is known up front, except for filtered forward-only results: those
buffer the remaining rows the first time they are counted.
"""

from __future__ import annotations

from itertools import islice
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from .errors import ResultsConsumed

Row = Dict[str, Any]


class ResultSequence(Protocol):
    """What every result sequence offers."""

    def __iter__(self) -> Iterator[Row]: ...

    def __len__(self) -> int: ...

    def count(self) -> int: ...

    def get_first(self) -> Optional[Row]: ...

    def items(self) -> Iterator[Tuple[int, Row]]: ...

    def map(self, fn: Callable[[Row], Row]) -> "ResultSequence": ...

    def filter(self, predicate: Callable[[Row], bool], limit: int = 0) -> "ResultSequence": ...


def _kept(rows: Iterable[Row], predicate: Callable[[Row], bool], limit: int) -> Iterator[Row]:
    kept = (row for row in rows if predicate(row))
    return islice(kept, limit) if limit > 0 else kept


class RestartableResults:
    """List-backed results; iteration always starts from the first row."""

    def __init__(self, rows: Iterable[Row]) -> None:
        self._rows: List[Row] = list(rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"RestartableResults(count={len(self._rows)})"

    def count(self) -> int:
        return len(self._rows)

    def rewind(self) -> Iterator[Row]:
        """A fresh iterator positioned on the first row."""
        return iter(self._rows)

    def get_first(self) -> Optional[Row]:
        return self._rows[0] if self._rows else None

    def items(self) -> Iterator[Tuple[int, Row]]:
        return enumerate(self._rows)

    def to_list(self) -> List[Row]:
        return list(self._rows)

    def map(self, fn: Callable[[Row], Row]) -> "RestartableResults":
        return RestartableResults(fn(row) for row in self._rows)

    def filter(self, predicate: Callable[[Row], bool], limit: int = 0) -> "RestartableResults":
        """Rows for which ``predicate`` holds, at most ``limit`` of them (0 = all)."""
        return RestartableResults(_kept(self._rows, predicate, limit))


class ForwardOnlyResults:
    """Cursor-backed results that can be traversed exactly once.

    The count is supplied by the backend (e.g. a COUNT(*) query) because a
    cursor cannot report it without being drained. When it is not known
    (None), the first call to ``count()`` drains the remaining rows into a
    buffer that the traversal then replays. ``get_first()`` peeks at the
    first row and buffers it so that it is still produced by the traversal.

    Raises:
        ResultsConsumed: When iterated a second time
    """

    def __init__(self, rows: Iterator[Row], count: Optional[int]) -> None:
        self._rows = rows
        self._count = count
        self._buffered: List[Row] = []
        self._first: Optional[Row] = None
        self._peeked = False
        self._started = False

    def __iter__(self) -> Iterator[Row]:
        if self._started:
            raise ResultsConsumed()
        self._started = True
        return self._generate()

    def _generate(self) -> Iterator[Row]:
        yield from self._buffered
        self._buffered = []
        yield from self._rows

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return f"ForwardOnlyResults(count={self._count}, started={self._started})"

    def count(self) -> int:
        """Number of rows in the sequence.

        Raises:
            ResultsConsumed: If the count is unknown and traversal began
        """
        if self._count is None:
            if self._started:
                raise ResultsConsumed()
            self._buffered.extend(self._rows)
            self._count = len(self._buffered)
            self._peeked = True
            self._first = self._buffered[0] if self._buffered else None
        return self._count

    def get_first(self) -> Optional[Row]:
        """First row, or None for an empty sequence.

        Raises:
            ResultsConsumed: If the traversal began before the first call
        """
        if not self._peeked:
            if self._started:
                raise ResultsConsumed()
            self._peeked = True
            self._first = next(self._rows, None)
            if self._first is not None:
                self._buffered.append(self._first)
        return self._first

    def items(self) -> Iterator[Tuple[int, Row]]:
        return enumerate(self)

    def _take(self) -> Iterator[Row]:
        if self._started:
            raise ResultsConsumed()
        self._started = True
        return self._generate()

    def map(self, fn: Callable[[Row], Row]) -> "ForwardOnlyResults":
        return ForwardOnlyResults((fn(row) for row in self._take()), self._count)

    def filter(self, predicate: Callable[[Row], bool], limit: int = 0) -> "ForwardOnlyResults":
        """Lazily keep rows for which ``predicate`` holds, at most ``limit`` (0 = all).

        The source is consumed; its rows are only read as the filtered
        sequence is traversed or counted.
        """
        return ForwardOnlyResults(_kept(self._take(), predicate, limit), None)
