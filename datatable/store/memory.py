"""
In-memory row store.

Useful for:
- Unit tests that need a table without a database
- Reference behaviour for other backends (search results must match)
- Small lookup tables that never need persisting

Invariants:
    - All data is lost when the store is garbage collected
    - Rows are copied on the way in and on the way out; callers never
      hold references into the store
    - Results are restartable
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..diagnostics import ErrorReporter, reports_errors
from ..errors import RowDoesNotExist, TransactionsNotSupported
from ..ids import IdGenerator, SequentialIdGenerator
from ..results import RestartableResults
from ..search import (
    Combinator,
    ConditionLike,
    Operator,
    SearchCondition,
    as_number,
    check_spec,
    condition_holds,
    equality_spec,
    matches,
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

logger = logging.getLogger(__name__)


class InMemoryRowStore(MappingAccess):
    """RowStore kept in a dict keyed by id.

    Example:
        >>> store = InMemoryRowStore("people")
        >>> store.create_row({"name": "Ada"})
        1
        >>> 1 in store
        True
    """

    def __init__(
        self,
        name: str = "",
        id_column: str = DEFAULT_ID_COLUMN,
        id_generator: Optional[IdGenerator] = None,
        reporter: Optional[ErrorReporter] = None,
    ) -> None:
        """Initialize an empty store.

        Args:
            name: Table name, used in errors and logs
            id_column: Name of the id column
            id_generator: Strategy for new ids (sequential by default)
            reporter: Error reporter (a fresh one by default)
        """
        self._name = name
        self._id_column = id_column
        self.id_generator: IdGenerator = id_generator or SequentialIdGenerator()
        self.reporter = reporter or ErrorReporter(name)
        self._rows: Dict[int, Row] = {}

    def __len__(self) -> int:
        return len(self._rows)

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

    def row_exists(self, row_id: int) -> bool:
        return row_id in self._rows

    @reports_errors
    def create_row(self, row: Mapping[str, Any]) -> int:
        prepared = prepare_row_for_creation(
            self, row, self.id_generator, self.reporter, self._name
        )
        row_id = prepared[self._id_column]
        self._rows[row_id] = prepared
        logger.debug("Created row", extra={"table": self._name, "row_id": row_id})
        return row_id

    @reports_errors
    def get_row(self, row_id: int) -> Row:
        try:
            return dict(self._rows[row_id])
        except KeyError:
            raise RowDoesNotExist(f"The row with id {row_id} does not exist", row_id) from None

    def get_all_rows(self) -> RestartableResults:
        return RestartableResults(dict(r) for r in self._rows.values())

    def delete_row(self, row_id: int) -> int:
        if self._rows.pop(row_id, None) is None:
            return 0
        logger.debug("Deleted row", extra={"table": self._name, "row_id": row_id})
        return 1

    @reports_errors
    def update_row(self, row: Mapping[str, Any]) -> None:
        row_id = check_row_id_for_update(row, self._id_column, "InMemoryRowStore update_row")
        if row_id not in self._rows:
            raise RowDoesNotExist(
                f"The row with id {row_id} does not exist, cannot update it", row_id
            )
        self._rows[row_id].update(row)

    # ---- searching -------------------------------------------------------

    @reports_errors
    def search(
        self,
        spec: Sequence[ConditionLike],
        combinator: Any = Combinator.AND,
        max_results: int = 0,
    ) -> RestartableResults:
        conditions, parsed = check_spec(spec, combinator)
        results: List[Row] = []
        for row in self._rows.values():
            if matches(row, conditions, parsed):
                results.append(dict(row))
                if 0 < max_results <= len(results):
                    break
        return RestartableResults(results)

    @reports_errors
    def find_rows(self, partial_row: Mapping[str, Any], max_results: int = 0) -> RestartableResults:
        if not partial_row:
            rows = self.get_all_rows().to_list()
            return RestartableResults(rows[:max_results] if max_results > 0 else rows)
        return self.search(equality_spec(partial_row), Combinator.AND, max_results)

    @reports_errors
    def find_row(self, partial_row: Mapping[str, Any]) -> Row:
        return first_match(self.find_rows(partial_row, 1), partial_row)

    def get_id_for_key_value(self, column: str, value: Any) -> int:
        if value is None:
            for row_id, row in self._rows.items():
                if column in row and row[column] is None:
                    return row_id
            return NULL_ROW_ID
        if not isinstance(value, (str, int, float)):
            return NULL_ROW_ID
        condition = SearchCondition(column, Operator.EQ, value)
        for row_id, row in self._rows.items():
            if condition_holds(row, condition):
                return row_id
        return NULL_ROW_ID

    def get_max_value_in_column(self, column: str) -> int:
        values = [as_number(r.get(column)) for r in self._rows.values()]
        numbers = [int(v) for v in values if v is not None]
        return max(numbers) if numbers else 0

    def get_max_id(self) -> int:
        return max(self._rows) if self._rows else 0

    def get_unique_ids(self) -> List[int]:
        return sorted(self._rows)

    # ---- transactions ----------------------------------------------------

    def supports_transactions(self) -> bool:
        return False

    @reports_errors
    def start_transaction(self) -> None:
        raise TransactionsNotSupported(self._name)

    @reports_errors
    def commit(self) -> None:
        raise TransactionsNotSupported(self._name)

    @reports_errors
    def rollback(self) -> None:
        raise TransactionsNotSupported(self._name)

    def is_in_transaction(self) -> bool:
        return False
