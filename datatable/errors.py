"""
Error types for datatable.

This module defines all exception types raised by the row stores and the
bitemporal layer:
- DataTableError: Base exception
- RowAlreadyExists / RowDoesNotExist: Row lookups
- InvalidId: Bad id in a row given for update
- InvalidSearchSpec / InvalidSearchType: Malformed searches
- InvalidTime / InvalidRowUpdateTime: Bad valid-time values
- BackendQueryError: Wrapped backing store failures
- IdGeneratorExhausted: Id generator gave up

Invariants:
    - All errors inherit from DataTableError
    - Every error carries a stable ErrorCode so callers can branch on kind
    - Validation errors are raised before anything is written

How to change safely:
    - Never renumber an existing ErrorCode member
    - Add new kinds as new subclasses with new codes
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional


class ErrorCode(IntEnum):
    """Stable error codes shared by exceptions and the error reporter."""

    NO_ERROR = 0
    UNKNOWN_ERROR = 1

    CANNOT_GET_UNUSED_ID = 10
    ROW_DOES_NOT_EXIST = 20
    ROW_ALREADY_EXISTS = 30
    ID_NOT_INTEGER = 40
    ID_NOT_SET = 60
    ID_IS_ZERO = 70
    EMPTY_RESULT_SET = 80
    KEY_VALUE_NOT_FOUND = 90

    INVALID_SPEC_ARRAY = 100
    SPEC_ARRAY_IS_EMPTY = 101
    SPEC_INVALID_COLUMN = 102
    SPEC_NO_VALUE = 103
    SPEC_INVALID_CONDITION = 104
    INVALID_SEARCH_TYPE = 110

    TRANSACTIONS_NOT_SUPPORTED = 120
    RESULTS_CONSUMED = 130

    BACKEND_QUERY_ERROR = 1010
    REQUIRED_COLUMN_NOT_FOUND = 1020
    WRONG_COLUMN_TYPE = 1030
    TABLE_NOT_FOUND = 1040

    INVALID_TIME = 2010
    INVALID_ROW_UPDATE_TIME = 2020


class DataTableError(Exception):
    """Base exception for all datatable errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class RowAlreadyExists(DataTableError):
    """A row with the given id is already in the table."""

    def __init__(self, row_id: int, table: Optional[str] = None) -> None:
        super().__init__(
            f"The row with given id ({row_id}) already exists, cannot create",
            code=ErrorCode.ROW_ALREADY_EXISTS,
            details={"row_id": row_id, "table": table},
        )
        self.row_id = row_id


class RowDoesNotExist(DataTableError):
    """No row with the given id (at the given time, if any)."""

    def __init__(
        self,
        message: str,
        row_id: Optional[int] = None,
        code: ErrorCode = ErrorCode.ROW_DOES_NOT_EXIST,
    ) -> None:
        super().__init__(message, code=code, details={"row_id": row_id})
        self.row_id = row_id


class InvalidId(DataTableError):
    """Row given for update does not carry a usable id.

    The code tells which way the id is wrong: ID_NOT_SET, ID_IS_ZERO
    or ID_NOT_INTEGER.
    """

    def __init__(self, message: str, code: ErrorCode, row_id: Any = None) -> None:
        super().__init__(message, code=code, details={"row_id": row_id})
        self.row_id = row_id


@dataclass(frozen=True)
class SearchSpecProblem:
    """One problem found while validating a search spec.

    Attributes:
        spec_index: Index of the offending condition, -1 for the search spec as a whole
        message: Description of the problem
        code: Error code for the problem
    """

    spec_index: int
    message: str
    code: ErrorCode

    def to_dict(self) -> Dict[str, Any]:
        return {"specIndex": self.spec_index, "message": self.message, "code": int(self.code)}


class InvalidSearchSpec(DataTableError):
    """Search spec failed validation.

    Attributes:
        problems: Every problem found, across all conditions
    """

    def __init__(self, problems: List[SearchSpecProblem]) -> None:
        super().__init__(
            "searchSpec is not valid",
            code=ErrorCode.INVALID_SPEC_ARRAY,
            details={"problems": [p.to_dict() for p in problems]},
        )
        self.problems = list(problems)


class InvalidSearchType(DataTableError):
    """Combinator is neither AND nor OR."""

    def __init__(self, combinator: Any) -> None:
        super().__init__(
            f"Invalid search type: {combinator!r}",
            code=ErrorCode.INVALID_SEARCH_TYPE,
            details={"combinator": repr(combinator)},
        )


class InvalidTime(DataTableError):
    """A time value could not be turned into a valid time string."""

    def __init__(
        self,
        message: str,
        time_value: Any = None,
        code: ErrorCode = ErrorCode.INVALID_TIME,
    ) -> None:
        super().__init__(message, code=code, details={"time": repr(time_value)})
        self.time_value = time_value


class InvalidRowUpdateTime(InvalidTime):
    """Update or delete time does not follow the current version's start."""

    def __init__(self, row_id: int, time_string: str, valid_from: str) -> None:
        super().__init__(
            f"Time {time_string} for row {row_id} is not after the current "
            f"version's validFrom {valid_from}",
            time_value=time_string,
            code=ErrorCode.INVALID_ROW_UPDATE_TIME,
        )
        self.details.update({"row_id": row_id, "valid_from": valid_from})
        self.row_id = row_id


class BackendQueryError(DataTableError):
    """The backing store failed while running a query.

    Attributes:
        context: Operation that issued the query
        table: Table the query ran against
        query: The query text
    """

    def __init__(
        self,
        message: str,
        context: str,
        table: Optional[str] = None,
        query: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Query error in \"{context}\": {message}",
            code=ErrorCode.BACKEND_QUERY_ERROR,
            details={"context": context, "table": table, "query": query},
        )
        self.context = context
        self.table = table
        self.query = query


class InvalidTable(DataTableError):
    """Backing table is missing or lacks a required column."""

    def __init__(self, message: str, code: ErrorCode, table: str) -> None:
        super().__init__(message, code=code, details={"table": table})
        self.table = table


class IdGeneratorExhausted(DataTableError):
    """No unused id found within the configured number of attempts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Could not generate an unused id after {attempts} attempts",
            code=ErrorCode.CANNOT_GET_UNUSED_ID,
            details={"attempts": attempts},
        )
        self.attempts = attempts


class TransactionsNotSupported(DataTableError):
    """The store has no transaction support."""

    def __init__(self, table: Optional[str] = None) -> None:
        super().__init__(
            "Transactions not supported",
            code=ErrorCode.TRANSACTIONS_NOT_SUPPORTED,
            details={"table": table},
        )


class ResultsConsumed(DataTableError):
    """A forward-only result sequence was traversed a second time."""

    def __init__(self) -> None:
        super().__init__(
            "Forward-only results can only be traversed once",
            code=ErrorCode.RESULTS_CONSUMED,
        )
