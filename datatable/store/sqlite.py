"""
SQLite row store.

This module implements the RowStore protocol over one table of a SQLite
database. The connection is supplied by the caller and may be shared by
several stores.

Invariants:
    - The table exists and its id column has INTEGER affinity (checked
      once, at construction)
    - Values are always bound as parameters, identifiers always quoted
    - Every sqlite3.Error is wrapped in BackendQueryError with the query
    - Search results are forward-only; their count comes from COUNT(*)
    - A condition on a column the table lacks never holds, as in memory

Transactions:
    SQLite transactions belong to the connection, not to the table.
    start_transaction() on one store therefore also covers every other
    store (and every other statement) sharing that connection until
    commit() or rollback().

How to change safely:
    - Keep search semantics identical to the in-memory evaluator; add a
      case to the cross-backend tests for any change
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence

from ..diagnostics import ErrorReporter, reports_errors
from ..errors import (
    BackendQueryError,
    ErrorCode,
    InvalidTable,
    RowDoesNotExist,
)
from ..ids import IdGenerator, SequentialIdGenerator
from ..results import ForwardOnlyResults, RestartableResults, ResultSequence
from ..search import (
    Combinator,
    ConditionLike,
    Operator,
    SearchCondition,
    as_number,
    check_spec,
    equality_spec,
    quote_identifier,
    to_sql_where,
)
from .base import (
    DEFAULT_ID_COLUMN,
    NULL_ROW_ID,
    MappingAccess,
    Row,
    check_row_id_for_update,
    first_match,
    prepare_row_for_creation,
)

if TYPE_CHECKING:
    from ..config import DataTableSettings

logger = logging.getLogger(__name__)


def connect_sqlite(path: str, settings: Optional["DataTableSettings"] = None) -> sqlite3.Connection:
    """Open a connection configured the way the stores expect.

    Autocommit mode; stores issue explicit BEGIN/COMMIT when asked for a
    transaction.

    Args:
        path: Database file, or ":memory:"
        settings: Optional settings for the busy timeout
    """
    busy_timeout_ms = settings.sqlite_busy_timeout_ms if settings else 5000
    conn = sqlite3.connect(
        path,
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    return conn


class SqliteRowStore(MappingAccess):
    """RowStore backed by a SQLite table.

    Example:
        >>> conn = connect_sqlite(":memory:")
        >>> _ = conn.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)")
        >>> store = SqliteRowStore(conn, "people")
        >>> store.create_row({"name": "Ada"})
        1
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        table: str,
        id_column: str = DEFAULT_ID_COLUMN,
        id_generator: Optional[IdGenerator] = None,
        reporter: Optional[ErrorReporter] = None,
        required_columns: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Bind the store to a table.

        Args:
            connection: Open SQLite connection
            table: Table name
            id_column: Name of the id column
            id_generator: Strategy for new ids (sequential by default)
            reporter: Error reporter (a fresh one by default)
            required_columns: Extra columns the table must have, mapped to a
                string their declared type must contain (e.g. "TEXT")

        Raises:
            InvalidTable: If the table or a required column is missing, or a
                column has the wrong type
        """
        self._conn = connection
        self._name = table
        self._id_column = id_column
        self.id_generator: IdGenerator = id_generator or SequentialIdGenerator()
        self.reporter = reporter or ErrorReporter(table)
        self._check_table({id_column: "INT", **(required_columns or {})})

    # ---- plumbing --------------------------------------------------------

    @property
    def _table(self) -> str:
        return quote_identifier(self._name)

    @property
    def _id(self) -> str:
        return quote_identifier(self._id_column)

    def _execute(self, sql: str, params: Sequence[Any], context: str) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise BackendQueryError(str(e), context, self._name, sql) from e

    def _to_row(self, cursor: sqlite3.Cursor, values: Sequence[Any]) -> Row:
        row = dict(zip([d[0] for d in cursor.description], values))
        if row.get(self._id_column) is not None:
            row[self._id_column] = int(row[self._id_column])
        return row

    def _iter_rows(self, cursor: sqlite3.Cursor) -> Iterator[Row]:
        for values in cursor:
            yield self._to_row(cursor, values)

    def _columns(self, context: str) -> Dict[str, str]:
        """Column names of the table mapped to their declared types."""
        cursor = self._execute(f"PRAGMA table_info({self._table})", (), context)
        return {r[1]: (r[2] or "") for r in cursor.fetchall()}

    def _check_table(self, expected: Mapping[str, str]) -> None:
        columns = self._columns("check table")
        if not columns:
            raise InvalidTable(
                f"Table {self._name} not found", ErrorCode.TABLE_NOT_FOUND, self._name
            )
        for column, type_fragment in expected.items():
            if column not in columns:
                raise InvalidTable(
                    f"Required column {column} not found in table {self._name}",
                    ErrorCode.REQUIRED_COLUMN_NOT_FOUND,
                    self._name,
                )
            if type_fragment.upper() not in columns[column].upper():
                raise InvalidTable(
                    f"Wrong column type for {self._name}::{column}, "
                    f"required='{type_fragment}', actual='{columns[column]}'",
                    ErrorCode.WRONG_COLUMN_TYPE,
                    self._name,
                )

    def _select(
        self,
        where: str,
        params: Sequence[Any],
        max_results: int,
        context: str,
    ) -> ForwardOnlyResults:
        sql = f"SELECT * FROM {self._table}"
        if where:
            sql += f" WHERE {where}"
        if max_results > 0:
            sql += f" LIMIT {int(max_results)}"
        count = self._execute(f"SELECT COUNT(*) FROM ({sql})", params, context).fetchone()[0]
        cursor = self._execute(sql, params, context)
        return ForwardOnlyResults(self._iter_rows(cursor), count)

    # ---- names -----------------------------------------------------------

    def get_name(self) -> str:
        return self._name

    def set_name(self, name: str) -> None:
        self._name = name
        self.reporter.name = name

    def get_id_column_name(self) -> str:
        return self._id_column

    def set_id_column_name(self, column: str) -> None:
        self._id_column = column

    # ---- rows ------------------------------------------------------------

    @reports_errors
    def row_exists(self, row_id: int) -> bool:
        cursor = self._execute(
            f"SELECT 1 FROM {self._table} WHERE {self._id} = ? LIMIT 1", (row_id,), "row_exists"
        )
        return cursor.fetchone() is not None

    @reports_errors
    def create_row(self, row: Mapping[str, Any]) -> int:
        prepared = prepare_row_for_creation(
            self, row, self.id_generator, self.reporter, self._name
        )
        columns = list(prepared)
        sql = (
            f"INSERT INTO {self._table} ({', '.join(quote_identifier(c) for c in columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        self._execute(sql, [prepared[c] for c in columns], "create_row")
        row_id = int(prepared[self._id_column])
        logger.debug("Created row", extra={"table": self._name, "row_id": row_id})
        return row_id

    @reports_errors
    def get_row(self, row_id: int) -> Row:
        cursor = self._execute(
            f"SELECT * FROM {self._table} WHERE {self._id} = ? LIMIT 1", (row_id,), "get_row"
        )
        values = cursor.fetchone()
        if values is None:
            raise RowDoesNotExist(f"The row with id {row_id} does not exist", row_id)
        return self._to_row(cursor, values)

    @reports_errors
    def get_all_rows(self) -> ForwardOnlyResults:
        return self._select("", (), 0, "get_all_rows")

    @reports_errors
    def delete_row(self, row_id: int) -> int:
        cursor = self._execute(
            f"DELETE FROM {self._table} WHERE {self._id} = ?", (row_id,), "delete_row"
        )
        deleted = 1 if cursor.rowcount > 0 else 0
        if deleted:
            logger.debug("Deleted row", extra={"table": self._name, "row_id": row_id})
        return deleted

    @reports_errors
    def update_row(self, row: Mapping[str, Any]) -> None:
        row_id = check_row_id_for_update(row, self._id_column, "SqliteRowStore update_row")
        if not self.row_exists(row_id):
            raise RowDoesNotExist(
                f"The row with id {row_id} does not exist, cannot update it", row_id
            )
        columns = [c for c in row if c != self._id_column]
        if not columns:
            return
        sets = ", ".join(f"{quote_identifier(c)} = ?" for c in columns)
        self._execute(
            f"UPDATE {self._table} SET {sets} WHERE {self._id} = ?",
            [row[c] for c in columns] + [row_id],
            "update_row",
        )

    # ---- searching -------------------------------------------------------

    @reports_errors
    def search(
        self,
        spec: Sequence[ConditionLike],
        combinator: Any = Combinator.AND,
        max_results: int = 0,
    ) -> ResultSequence:
        conditions, parsed = check_spec(spec, combinator)
        return self._search_conditions(conditions, parsed, max_results)

    def _search_conditions(
        self,
        conditions: List[SearchCondition],
        combinator: Combinator,
        max_results: int,
    ) -> ResultSequence:
        # SQLite reads an unknown quoted name as a string literal, so
        # conditions on missing columns never reach the query
        known = self._columns("search")
        missing = sorted({c.column for c in conditions if c.column not in known})
        if missing:
            if combinator is Combinator.AND:
                conditions = []
            else:
                conditions = [c for c in conditions if c.column in known]
            if not conditions:
                self.reporter.add_warning(
                    f"Search on missing column(s) {', '.join(missing)} in table "
                    f"{self._name} (reported as no results)",
                    ErrorCode.EMPTY_RESULT_SET,
                )
                return RestartableResults([])
        where, params = to_sql_where(conditions, combinator)
        return self._select(where, params, max_results, "search")

    @reports_errors
    def find_rows(self, partial_row: Mapping[str, Any], max_results: int = 0) -> ResultSequence:
        if not partial_row:
            return self._select("", (), max_results, "find_rows")
        conditions, parsed = check_spec(equality_spec(partial_row), Combinator.AND)
        return self._search_conditions(conditions, parsed, max_results)

    @reports_errors
    def find_row(self, partial_row: Mapping[str, Any]) -> Row:
        return first_match(self.find_rows(partial_row, 1), partial_row)

    @reports_errors
    def get_id_for_key_value(self, column: str, value: Any) -> int:
        if value is not None and not isinstance(value, (str, int, float)):
            return NULL_ROW_ID
        if column not in self._columns("get_id_for_key_value"):
            return NULL_ROW_ID
        if value is None:
            where = f"{quote_identifier(column)} IS NULL"
            params: Sequence[Any] = ()
        else:
            where, params = to_sql_where([SearchCondition(column, Operator.EQ, value)])
        cursor = self._execute(
            f"SELECT {self._id} FROM {self._table} WHERE {where} LIMIT 1",
            params,
            "get_id_for_key_value",
        )
        found = cursor.fetchone()
        return NULL_ROW_ID if found is None else int(found[0])

    @reports_errors
    def get_max_value_in_column(self, column: str) -> int:
        cursor = self._execute(
            f"SELECT MAX({quote_identifier(column)}) FROM {self._table}",
            (),
            "get_max_value_in_column",
        )
        number = as_number(cursor.fetchone()[0])
        return 0 if number is None else int(number)

    def get_max_id(self) -> int:
        return self.get_max_value_in_column(self._id_column)

    @reports_errors
    def get_unique_ids(self) -> List[int]:
        cursor = self._execute(
            f"SELECT DISTINCT {self._id} FROM {self._table} ORDER BY {self._id}",
            (),
            "get_unique_ids",
        )
        return [int(r[0]) for r in cursor.fetchall()]

    # ---- transactions ----------------------------------------------------

    def supports_transactions(self) -> bool:
        return True

    @reports_errors
    def start_transaction(self) -> None:
        self._execute("BEGIN IMMEDIATE", (), "start_transaction")

    @reports_errors
    def commit(self) -> None:
        self._execute("COMMIT", (), "commit")

    @reports_errors
    def rollback(self) -> None:
        self._execute("ROLLBACK", (), "rollback")

    def is_in_transaction(self) -> bool:
        return self._conn.in_transaction
