"""
Bitemporal versioning engine.

BitemporalTable wraps a RowStore and keeps the full valid-time history of
every row. Each change writes a new version instead of overwriting: the
wrapped store's id column is a surrogate version id, while the logical id
callers see lives in a separate column shared by all versions of a row.

Version layout (one stored row per version):
    version_id  surrogate id, owned by the wrapped store
    id          logical id
    validFrom   start of the valid-time interval (inclusive)
    validUntil  end of the interval (exclusive), END_OF_TIME while current

Invariants:
    - Per logical id, intervals are contiguous and never overlap
    - At most one version per logical id is current (open-ended); none
      once the row has been deleted
    - Stored versions are never changed except to close validUntil
    - A logical id is never re-used, even after deletion
    - Rows handed back never contain the version id column

Transactions:
    Closing the current version and inserting its successor run in one
    store transaction when the store supports them and the caller has not
    already started one.

How to change safely:
    - Anything that writes versions must go through _insert_version and
      _close so the chain invariant holds
    - Run check_consistency() in tests after any change to the write paths
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, List, Mapping, Optional, Sequence

from .. import timestring
from ..diagnostics import ErrorReporter, reports_errors
from ..errors import InvalidRowUpdateTime, RowDoesNotExist
from ..ids import IdGenerator, SequentialIdGenerator, create_id_generator
from ..results import ResultSequence
from ..search import (
    Combinator,
    ConditionLike,
    Operator,
    SearchCondition,
    check_spec,
    equality_spec,
    matches,
    quote_identifier,
)
from ..store.base import (
    DEFAULT_ID_COLUMN,
    NULL_ROW_ID,
    MappingAccess,
    Row,
    RowStore,
    check_row_id_for_update,
    first_match,
    is_usable_id,
    prepare_row_for_creation,
)
from ..store.sqlite import SqliteRowStore
from ..timestring import END_OF_TIME, VALID_FROM, VALID_UNTIL
from .consistency import ConsistencyIssue, check_consistency

if TYPE_CHECKING:
    from ..config import DataTableSettings

logger = logging.getLogger(__name__)


class _HistoryIdSpace:
    """Logical ids seen through the version store.

    An id is taken if any version ever carried it, so deleted ids are
    never handed out again.
    """

    def __init__(self, table: "BitemporalTable") -> None:
        self._table = table

    def row_exists(self, row_id: int) -> bool:
        return self._table._has_history(row_id)

    def get_max_value_in_column(self, column: str) -> int:
        return self._table.store.get_max_value_in_column(column)

    def get_id_column_name(self) -> str:
        return self._table.get_id_column_name()


class BitemporalTable(MappingAccess):
    """A RowStore with valid-time history.

    The plain RowStore methods act at the current time; the ``*_with_time``
    methods take any time accepted by ``timestring.normalize``.

    Example:
        >>> table = BitemporalTable(InMemoryRowStore("prices", id_column="version_id"))
        >>> row_id = table.create_row_with_time({"v": 1}, "2010-01-01")
        >>> table.update_row_with_time({"id": row_id, "v": 2}, "2015-01-01")
        >>> table.get_row_with_time(row_id, "2012-01-01")["v"]
        1
    """

    def __init__(
        self,
        store: RowStore,
        id_column: str = DEFAULT_ID_COLUMN,
        id_generator: Optional[IdGenerator] = None,
        reporter: Optional[ErrorReporter] = None,
    ) -> None:
        """Wrap a version store.

        Args:
            store: Store holding the versions; its id column is the version id
            id_column: Name of the logical id column
            id_generator: Strategy for new logical ids (sequential by default)
            reporter: Error reporter (the store's reporter by default)

        Raises:
            ValueError: If the logical id column is the store's id column
        """
        if store.get_id_column_name() == id_column:
            raise ValueError(
                f"Logical id column '{id_column}' must differ from the store's "
                "version id column"
            )
        self.store = store
        self._id_column = id_column
        self.id_generator: IdGenerator = id_generator or SequentialIdGenerator()
        self.reporter = reporter or store.reporter
        self._id_space = _HistoryIdSpace(self)

    @classmethod
    def from_sqlite(
        cls,
        connection: sqlite3.Connection,
        table: str,
        settings: Optional["DataTableSettings"] = None,
    ) -> "BitemporalTable":
        """Open a bitemporal table stored in SQLite.

        Raises:
            InvalidTable: If the table lacks the version columns
        """
        version_id_column = settings.version_id_column if settings else "version_id"
        id_column = settings.id_column if settings else DEFAULT_ID_COLUMN
        store = SqliteRowStore(
            connection,
            table,
            id_column=version_id_column,
            required_columns={id_column: "INT", VALID_FROM: "TEXT", VALID_UNTIL: "TEXT"},
        )
        generator = create_id_generator(settings) if settings else None
        return cls(store, id_column=id_column, id_generator=generator)

    # ---- plumbing --------------------------------------------------------

    @property
    def _version_column(self) -> str:
        return self.store.get_id_column_name()

    def _reserved(self) -> tuple:
        return (self._version_column, VALID_FROM, VALID_UNTIL)

    def _to_logical(self, version: Row) -> Row:
        row = dict(version)
        row.pop(self._version_column, None)
        return row

    @staticmethod
    def _strip_time(row: Row) -> Row:
        return {k: v for k, v in row.items() if k not in (VALID_FROM, VALID_UNTIL)}

    @staticmethod
    def _time_conditions(t: str) -> List[SearchCondition]:
        return [
            SearchCondition(VALID_FROM, Operator.LE, t),
            SearchCondition(VALID_UNTIL, Operator.GT, t),
        ]

    def _has_history(self, row_id: int) -> bool:
        return self.store.get_id_for_key_value(self._id_column, row_id) != NULL_ROW_ID

    def _versions(self, row_id: int) -> List[Row]:
        versions = list(self.store.find_rows({self._id_column: row_id}))
        versions.sort(key=lambda v: v[VALID_FROM])
        return versions

    def _version_at(self, row_id: Any, t: str) -> Optional[Row]:
        if not is_usable_id(row_id):
            return None
        spec = [SearchCondition(self._id_column, Operator.EQ, row_id)] + self._time_conditions(t)
        return max(self.store.search(spec), key=lambda v: v[VALID_FROM], default=None)

    def _current_version(self, row_id: int) -> Optional[Row]:
        current = self.store.find_rows({self._id_column: row_id, VALID_UNTIL: END_OF_TIME})
        return max(current, key=lambda v: v[VALID_FROM], default=None)

    def _insert_version(self, values: Mapping[str, Any], t: str) -> int:
        version = {k: v for k, v in values.items() if k not in self._reserved()}
        version[VALID_FROM] = t
        version[VALID_UNTIL] = END_OF_TIME
        return self.store.create_row(version)

    def _close(self, version: Row, t: str) -> None:
        self.store.update_row({self._version_column: version[self._version_column], VALID_UNTIL: t})

    def _check_successor_time(self, row_id: int, current: Row, t: str) -> None:
        if t <= current[VALID_FROM]:
            raise InvalidRowUpdateTime(row_id, t, current[VALID_FROM])

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        if not self.store.supports_transactions() or self.store.is_in_transaction():
            yield
            return
        self.store.start_transaction()
        try:
            yield
        except Exception:
            self.store.rollback()
            raise
        self.store.commit()

    # ---- names -----------------------------------------------------------

    def get_name(self) -> str:
        return self.store.get_name()

    def set_name(self, name: str) -> None:
        self.store.set_name(name)

    def get_id_column_name(self) -> str:
        return self._id_column

    def set_id_column_name(self, column: str) -> None:
        self._id_column = column

    # ---- versioned operations --------------------------------------------

    @reports_errors
    def create_row_with_time(self, row: Mapping[str, Any], t: Any) -> int:
        """Create a row valid from ``t`` onwards and return its logical id.

        Raises:
            InvalidTime: If ``t`` is not a valid time
            RowAlreadyExists: If the row's explicit id has any history
        """
        t = timestring.normalize(t, "create_row_with_time")
        values = {k: v for k, v in row.items() if k not in self._reserved()}
        prepared = prepare_row_for_creation(
            self._id_space, values, self.id_generator, self.reporter, self.get_name()
        )
        row_id = prepared[self._id_column]
        self._insert_version(prepared, t)
        logger.debug(
            "Created row",
            extra={"table": self.get_name(), "row_id": row_id, "valid_from": t},
        )
        return row_id

    @reports_errors
    def row_exists_with_time(self, row_id: int, t: Any) -> bool:
        t = timestring.normalize(t, "row_exists_with_time")
        return self._version_at(row_id, t) is not None

    @reports_errors
    def get_row_with_time(self, row_id: int, t: Any) -> Row:
        """The version of ``row_id`` valid at ``t``, with its valid-time columns.

        Raises:
            RowDoesNotExist: If no version is valid at ``t``
        """
        t = timestring.normalize(t, "get_row_with_time")
        version = self._version_at(row_id, t)
        if version is None:
            raise RowDoesNotExist(f"The row with id {row_id} does not exist at {t}", row_id)
        return self._to_logical(version)

    @reports_errors
    def update_row_with_time(self, row: Mapping[str, Any], t: Any) -> None:
        """Start a new version at ``t`` with the given columns changed.

        Columns not given keep their current values.

        Raises:
            InvalidTime: If ``t`` is not a valid time
            InvalidId: If the row's id is missing or bad
            RowDoesNotExist: If the row has no current version
            InvalidRowUpdateTime: If ``t`` is not after the current version's start
        """
        t = timestring.normalize(t, "update_row_with_time")
        row_id = check_row_id_for_update(row, self._id_column, "BitemporalTable update_row_with_time")
        current = self._current_version(row_id)
        if current is None:
            raise RowDoesNotExist(
                f"The row with id {row_id} does not exist, cannot update it", row_id
            )
        self._check_successor_time(row_id, current, t)

        merged = {k: v for k, v in current.items() if k not in self._reserved()}
        merged.update({k: v for k, v in row.items() if k not in self._reserved()})
        with self._atomic():
            self._close(current, t)
            self._insert_version(merged, t)
        logger.debug(
            "Updated row",
            extra={"table": self.get_name(), "row_id": row_id, "valid_from": t},
        )

    @reports_errors
    def delete_row_with_time(self, row_id: int, t: Any) -> int:
        """End the row's current version at ``t``.

        Returns:
            1 if a current version was closed, 0 if there was none

        Raises:
            InvalidRowUpdateTime: If ``t`` is not after the current version's start
        """
        t = timestring.normalize(t, "delete_row_with_time")
        current = self._current_version(row_id) if is_usable_id(row_id) else None
        if current is None:
            return 0
        self._check_successor_time(row_id, current, t)
        with self._atomic():
            self._close(current, t)
        logger.debug(
            "Deleted row",
            extra={"table": self.get_name(), "row_id": row_id, "valid_until": t},
        )
        return 1

    @reports_errors
    def get_row_history(self, row_id: int) -> List[Row]:
        """Every version of ``row_id``, oldest first.

        Raises:
            RowDoesNotExist: If the id never existed
        """
        versions = self._versions(row_id) if is_usable_id(row_id) else []
        if not versions:
            raise RowDoesNotExist(f"The row with id {row_id} has no history", row_id)
        return [self._to_logical(v) for v in versions]

    @reports_errors
    def search_with_time(
        self,
        spec: Sequence[ConditionLike],
        combinator: Any = Combinator.AND,
        max_results: int = 0,
        t: Any = None,
    ) -> ResultSequence:
        """Search the versions valid at ``t`` (now if None).

        AND searches run in the store with the interval conditions added.
        OR searches run in the store unrestricted and are filtered by
        interval afterwards.
        """
        conditions, parsed = check_spec(spec, combinator)
        t = timestring.now() if t is None else timestring.normalize(t, "search_with_time")
        if parsed is Combinator.AND:
            results = self.store.search(
                conditions + self._time_conditions(t), Combinator.AND, max_results
            )
            return results.map(self._to_logical)

        window = self._time_conditions(t)
        return (
            self.store.search(conditions, Combinator.OR)
            .filter(lambda version: matches(version, window, Combinator.AND), max_results)
            .map(self._to_logical)
        )

    @reports_errors
    def find_rows_with_time(
        self,
        partial_row: Mapping[str, Any],
        max_results: int = 0,
        t: Any = None,
    ) -> ResultSequence:
        if not partial_row:
            return self.get_all_rows_with_time(t, max_results)
        return self.search_with_time(equality_spec(partial_row), Combinator.AND, max_results, t)

    @reports_errors
    def get_all_rows_with_time(self, t: Any = None, max_results: int = 0) -> ResultSequence:
        t = timestring.now() if t is None else timestring.normalize(t, "get_all_rows_with_time")
        return self.store.search(self._time_conditions(t), Combinator.AND, max_results).map(
            self._to_logical
        )

    # ---- RowStore contract at the current time ---------------------------

    def row_exists(self, row_id: int) -> bool:
        return self.row_exists_with_time(row_id, timestring.now())

    def create_row(self, row: Mapping[str, Any]) -> int:
        return self.create_row_with_time(row, timestring.now())

    @reports_errors
    def get_row(self, row_id: int) -> Row:
        return self._strip_time(self.get_row_with_time(row_id, timestring.now()))

    def update_row(self, row: Mapping[str, Any]) -> None:
        self.update_row_with_time(row, timestring.now())

    def delete_row(self, row_id: int) -> int:
        return self.delete_row_with_time(row_id, timestring.now())

    def search(
        self,
        spec: Sequence[ConditionLike],
        combinator: Any = Combinator.AND,
        max_results: int = 0,
    ) -> ResultSequence:
        return self.search_with_time(spec, combinator, max_results, timestring.now())

    def find_rows(self, partial_row: Mapping[str, Any], max_results: int = 0) -> ResultSequence:
        return self.find_rows_with_time(partial_row, max_results, timestring.now())

    @reports_errors
    def find_row(self, partial_row: Mapping[str, Any]) -> Row:
        return first_match(self.find_rows(partial_row, 1), partial_row)

    def get_all_rows(self) -> ResultSequence:
        return self.get_all_rows_with_time(timestring.now())

    def get_id_for_key_value(self, column: str, value: Any) -> int:
        """Logical id of a current row with ``column == value``, else NULL_ROW_ID."""
        if value is None or isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return NULL_ROW_ID
        first = self.find_rows({column: value}, 1).get_first()
        return NULL_ROW_ID if first is None else int(first[self._id_column])

    def get_max_value_in_column(self, column: str) -> int:
        """Maximum over every version, current or not."""
        return self.store.get_max_value_in_column(column)

    def get_max_id(self) -> int:
        return self.store.get_max_value_in_column(self._id_column)

    def get_unique_ids(self) -> List[int]:
        """Logical ids with a current version, ascending."""
        return sorted({int(r[self._id_column]) for r in self.get_all_rows()})

    # ---- transactions ----------------------------------------------------

    def supports_transactions(self) -> bool:
        return self.store.supports_transactions()

    def start_transaction(self) -> None:
        self.store.start_transaction()

    def commit(self) -> None:
        self.store.commit()

    def rollback(self) -> None:
        self.store.rollback()

    def is_in_transaction(self) -> bool:
        return self.store.is_in_transaction()

    # ---- diagnostics -----------------------------------------------------

    def check_consistency(self) -> List[ConsistencyIssue]:
        """Check every version chain in the table."""
        issues = check_consistency(self.store.get_all_rows(), self._id_column)
        if issues:
            logger.warning(
                "Inconsistent version chains",
                extra={"table": self.get_name(), "issues": len(issues)},
            )
        return issues


def create_sqlite_table(
    connection: sqlite3.Connection,
    table: str,
    columns: Optional[Mapping[str, str]] = None,
    settings: Optional["DataTableSettings"] = None,
) -> None:
    """Create a bitemporal table and its lookup index if they do not exist.

    Args:
        connection: Open SQLite connection
        table: Table name
        columns: Extra data columns mapped to their SQL type
        settings: Optional settings for the id column names
    """
    version_id_column = settings.version_id_column if settings else "version_id"
    id_column = settings.id_column if settings else DEFAULT_ID_COLUMN
    definitions = [
        f"{quote_identifier(version_id_column)} INTEGER PRIMARY KEY",
        f"{quote_identifier(id_column)} INTEGER NOT NULL",
        f"{quote_identifier(VALID_FROM)} TEXT NOT NULL",
        f"{quote_identifier(VALID_UNTIL)} TEXT NOT NULL",
    ]
    definitions += [f"{quote_identifier(c)} {t}" for c, t in (columns or {}).items()]
    index = quote_identifier(f"idx_{table}_{id_column}_valid_from")
    connection.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (
            {', '.join(definitions)}
        );
        CREATE INDEX IF NOT EXISTS {index}
            ON {quote_identifier(table)}({quote_identifier(id_column)}, {quote_identifier(VALID_FROM)});
        """
    )
