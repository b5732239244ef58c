"""
Base protocol and shared checks for row stores.

This module defines the RowStore protocol that every backend must
implement, plus the free functions backends share for id handling. Backends
use these functions directly rather than inheriting them.

Invariants:
    - Every row has exactly one id column holding a positive int
    - create_row never overwrites: an explicit id that is taken raises
      RowAlreadyExists
    - delete_row on a missing id returns 0 and is not an error
    - Stores never leak raw backend exceptions

How to change safely:
    - Protocol changes require updating every backend and the bitemporal
      wrapper, which implements the same protocol
    - Keep the in-memory store's search results identical to the SQL
      store's for the same rows
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from ..diagnostics import ErrorReporter
from ..errors import DataTableError, ErrorCode, InvalidId, RowAlreadyExists, RowDoesNotExist
from ..ids import IdGenerator, IdSpace, SequentialIdGenerator
from ..results import ResultSequence
from ..search import Combinator, ConditionLike

logger = logging.getLogger(__name__)

DEFAULT_ID_COLUMN = "id"

# Returned by get_id_for_key_value when no row matches
NULL_ROW_ID = -1

Row = Dict[str, Any]


@runtime_checkable
class RowStore(Protocol):
    """Protocol for tables of rows addressed by a unique integer id.

    Example:
        >>> store = InMemoryRowStore("people")
        >>> row_id = store.create_row({"name": "Ada", "age": 36})
        >>> store.get_row(row_id)
        {'name': 'Ada', 'age': 36, 'id': 1}
    """

    reporter: ErrorReporter

    @abstractmethod
    def row_exists(self, row_id: int) -> bool: ...

    @abstractmethod
    def create_row(self, row: Mapping[str, Any]) -> int:
        """Create a row and return its id.

        A fresh id is assigned if the row has no usable id.

        Raises:
            RowAlreadyExists: If the row's explicit id is taken
        """
        ...

    @abstractmethod
    def get_row(self, row_id: int) -> Row:
        """Raises RowDoesNotExist if there is no such row."""
        ...

    @abstractmethod
    def get_all_rows(self) -> ResultSequence: ...

    @abstractmethod
    def delete_row(self, row_id: int) -> int:
        """Delete a row, returning the number of rows removed (0 or 1)."""
        ...

    @abstractmethod
    def update_row(self, row: Mapping[str, Any]) -> None:
        """Overwrite the supplied columns of an existing row.

        Raises:
            InvalidId: If the row's id is missing, not an int or not positive
            RowDoesNotExist: If there is no row with that id
        """
        ...

    @abstractmethod
    def search(
        self,
        spec: Sequence[ConditionLike],
        combinator: Any = Combinator.AND,
        max_results: int = 0,
    ) -> ResultSequence:
        """Rows matching ``spec``; max_results <= 0 means no limit.

        Raises:
            InvalidSearchSpec: If the search spec is malformed
            InvalidSearchType: If the combinator is not AND or OR
        """
        ...

    @abstractmethod
    def find_rows(self, partial_row: Mapping[str, Any], max_results: int = 0) -> ResultSequence: ...

    @abstractmethod
    def find_row(self, partial_row: Mapping[str, Any]) -> Row: ...

    @abstractmethod
    def get_id_for_key_value(self, column: str, value: Any) -> int: ...

    @abstractmethod
    def get_max_value_in_column(self, column: str) -> int: ...

    @abstractmethod
    def get_max_id(self) -> int: ...

    @abstractmethod
    def get_unique_ids(self) -> List[int]: ...

    @abstractmethod
    def get_name(self) -> str: ...

    @abstractmethod
    def set_name(self, name: str) -> None: ...

    @abstractmethod
    def get_id_column_name(self) -> str: ...

    @abstractmethod
    def set_id_column_name(self, column: str) -> None: ...

    @abstractmethod
    def supports_transactions(self) -> bool: ...

    @abstractmethod
    def start_transaction(self) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def is_in_transaction(self) -> bool: ...


class MappingAccess:
    """``in``, ``[]``, ``del`` and iteration on top of the RowStore methods.

    ``store[row_id] = row`` updates the row if it exists and creates it
    with that id otherwise.
    """

    def __contains__(self: Any, row_id: Any) -> bool:
        return self.row_exists(int(row_id))

    def __getitem__(self: Any, row_id: Any) -> Row:
        return self.get_row(int(row_id))

    def __setitem__(self: Any, row_id: Any, row: Mapping[str, Any]) -> None:
        row_id = int(row_id)
        values = dict(row)
        values[self.get_id_column_name()] = row_id
        if self.row_exists(row_id):
            self.update_row(values)
        else:
            self.create_row(values)

    def __delitem__(self: Any, row_id: Any) -> None:
        self.delete_row(int(row_id))

    def __iter__(self: Any) -> Iterator[Row]:
        return iter(self.get_all_rows())


def first_match(results: ResultSequence, partial_row: Mapping[str, Any]) -> Row:
    """First row of ``results`` or RowDoesNotExist (code EMPTY_RESULT_SET)."""
    first = results.get_first()
    if first is None:
        raise RowDoesNotExist(
            f"Empty result set when trying to find row matching {dict(partial_row)!r}",
            code=ErrorCode.EMPTY_RESULT_SET,
        )
    return first


def is_usable_id(value: Any) -> bool:
    """Whether ``value`` can serve as a row id (a positive int, not a bool)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def get_unused_id(
    table: IdSpace,
    id_generator: IdGenerator,
    reporter: ErrorReporter,
) -> int:
    """Ask the generator for an id, falling back to sequential ids on failure."""
    try:
        return id_generator.get_one_unused_id(table)
    except DataTableError as e:
        reporter.add_warning(
            f"Id generator error: {e.message}, defaulting to SequentialIdGenerator",
            e.code,
        )
        return SequentialIdGenerator().get_one_unused_id(table)


def prepare_row_for_creation(
    table: IdSpace,
    row: Mapping[str, Any],
    id_generator: IdGenerator,
    reporter: ErrorReporter,
    table_name: Optional[str] = None,
) -> Row:
    """Return a copy of ``row`` carrying a good id for creation.

    Rows without an id, or with 0, a negative number or a non-int, get an
    unused id from the generator. An explicit good id is kept if free.

    Raises:
        RowAlreadyExists: If the explicit id is taken
    """
    prepared = dict(row)
    id_column = table.get_id_column_name()
    row_id = prepared.get(id_column)
    if not is_usable_id(row_id):
        prepared[id_column] = get_unused_id(table, id_generator, reporter)
    elif table.row_exists(row_id):
        raise RowAlreadyExists(row_id, table_name)
    return prepared


def check_row_id_for_update(row: Mapping[str, Any], id_column: str, context: str) -> int:
    """Return the id of a row given for update.

    Raises:
        InvalidId: ID_NOT_SET, ID_NOT_INTEGER or ID_IS_ZERO
    """
    row_id = row.get(id_column)
    if row_id is None:
        raise InvalidId(f"Id not set in given row ({context})", ErrorCode.ID_NOT_SET)
    if not isinstance(row_id, int) or isinstance(row_id, bool):
        raise InvalidId(
            f"Id in given row is not an integer ({context})", ErrorCode.ID_NOT_INTEGER, row_id
        )
    if row_id <= 0:
        raise InvalidId(
            f"Id is equal to zero in given row ({context})", ErrorCode.ID_IS_ZERO, row_id
        )
    return row_id
