"""
datatable - Row stores with declarative search and valid-time history.

This package provides a uniform interface to tables of rows addressed by a
positive integer id:
- Row stores: in memory and SQLite, behind one RowStore protocol
- Search specs: flat AND/OR lists of column conditions
- Id generators: sequential or random
- BitemporalTable: full valid-time history of every row

Example:
    >>> from datatable import BitemporalTable, InMemoryRowStore
    >>>
    >>> table = BitemporalTable(InMemoryRowStore("prices", id_column="version_id"))
    >>> row_id = table.create_row_with_time({"price": 10}, "2010-01-01")
    >>> table.update_row_with_time({"id": row_id, "price": 12}, "2015-01-01")
    >>> table.get_row_with_time(row_id, "2012-06-30")["price"]
    10

Invariants:
    - Every row has exactly one positive integer id
    - Both backends return the same rows for the same search
    - Version chains never overlap and never have gaps

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import DataTableSettings
from .diagnostics import ErrorReporter, Result, attempt
from .errors import (
    BackendQueryError,
    DataTableError,
    ErrorCode,
    IdGeneratorExhausted,
    InvalidId,
    InvalidRowUpdateTime,
    InvalidSearchSpec,
    InvalidSearchType,
    InvalidTable,
    InvalidTime,
    ResultsConsumed,
    RowAlreadyExists,
    RowDoesNotExist,
    TransactionsNotSupported,
)
from .ids import RandomIdGenerator, SequentialIdGenerator, create_id_generator
from .results import ForwardOnlyResults, RestartableResults
from .search import Combinator, Operator, SearchCondition
from .store import NULL_ROW_ID, InMemoryRowStore, RowStore, SqliteRowStore, connect_sqlite
from .temporal import BitemporalTable, ConsistencyIssue, IssueKind, create_sqlite_table
from .timestring import END_OF_TIME

__all__ = [
    # Version
    "__version__",
    # Stores
    "RowStore",
    "InMemoryRowStore",
    "SqliteRowStore",
    "connect_sqlite",
    "NULL_ROW_ID",
    # Bitemporal
    "BitemporalTable",
    "create_sqlite_table",
    "ConsistencyIssue",
    "IssueKind",
    "END_OF_TIME",
    # Search
    "SearchCondition",
    "Operator",
    "Combinator",
    # Results
    "RestartableResults",
    "ForwardOnlyResults",
    # Ids
    "SequentialIdGenerator",
    "RandomIdGenerator",
    "create_id_generator",
    # Config and diagnostics
    "DataTableSettings",
    "ErrorReporter",
    "Result",
    "attempt",
    # Errors
    "DataTableError",
    "ErrorCode",
    "RowAlreadyExists",
    "RowDoesNotExist",
    "InvalidId",
    "InvalidSearchSpec",
    "InvalidSearchType",
    "InvalidTime",
    "InvalidRowUpdateTime",
    "BackendQueryError",
    "InvalidTable",
    "IdGeneratorExhausted",
    "TransactionsNotSupported",
    "ResultsConsumed",
]
