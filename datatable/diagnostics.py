"""
Error and warning reporting for row stores.

Every store is constructed with an ErrorReporter. Public store operations
are wrapped with ``reports_errors`` so the reporter always mirrors the
exception the caller received, for callers that prefer polling over
exception handling. Warnings (for instance an id generator falling back to
sequential ids) accumulate until explicitly cleared.

Callers who prefer checked results over exceptions can use ``attempt``:

    >>> result = attempt(store.get_row, 42)
    >>> if not result.ok:
    ...     print(result.error.code)
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .errors import DataTableError, ErrorCode

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DiagnosticWarning:
    """A non-fatal problem noticed during an operation."""

    message: str
    code: ErrorCode


class ErrorReporter:
    """Last-error state plus an accumulating warnings list.

    Attributes:
        name: Name used in log records (usually the table name)
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._error_code = ErrorCode.NO_ERROR
        self._error_message = ""
        self._warnings: List[DiagnosticWarning] = []

    @property
    def error_code(self) -> ErrorCode:
        return self._error_code

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def warnings(self) -> List[DiagnosticWarning]:
        return list(self._warnings)

    def reset_error(self) -> None:
        self._error_code = ErrorCode.NO_ERROR
        self._error_message = ""

    def set_error(self, message: str, code: ErrorCode) -> None:
        self._error_code = code
        self._error_message = message
        logger.error(message, extra={"table": self.name, "code": int(code)})

    def record(self, error: DataTableError) -> None:
        """Mirror a raised error."""
        self.set_error(error.message, error.code)

    def add_warning(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN_ERROR) -> None:
        self._warnings.append(DiagnosticWarning(message=message, code=code))
        logger.warning(message, extra={"table": self.name, "code": int(code)})

    def clear_warnings(self) -> None:
        self._warnings.clear()


def reports_errors(method: Callable[..., T]) -> Callable[..., T]:
    """Reset the instance's reporter before the call and record any error.

    The decorated method's instance must expose a ``reporter`` attribute.
    """

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        self.reporter.reset_error()
        try:
            return method(self, *args, **kwargs)
        except DataTableError as e:
            self.reporter.record(e)
            raise

    return wrapper


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged success/failure of one operation."""

    ok: bool
    value: Optional[T] = None
    error: Optional[DataTableError] = None

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def attempt(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Run ``fn`` and capture a DataTableError as a failed Result.

    Errors outside the datatable taxonomy propagate unchanged.
    """
    try:
        return Result(ok=True, value=fn(*args, **kwargs))
    except DataTableError as e:
        return Result(ok=False, error=e)
