"""
Search-spec validation and evaluation.

A search spec is a flat list of conditions ``(column, operator, value)``
combined with a single combinator, AND or OR. The same spec can be
evaluated in memory (``matches``) or turned into a SQL WHERE fragment
(``to_sql_where``); both must select exactly the same rows.

Comparison rules:
    - Text condition values compare the stored value's text form in
      byte order (SQLite's BINARY collation does the same)
    - Other condition values compare numerically, and only against stored
      numbers; stored text never satisfies a numeric condition, even when
      it looks like a number
    - A missing or NULL stored value satisfies no condition, not even NE

Invariants:
    - Validation happens before any store is touched
    - Problems are reported for every condition, not just the first
    - OR is plain disjunction: a row matches if any condition holds

How to change safely:
    - Any new operator needs both an in-memory and a SQL rendition,
      plus a cross-backend test
"""

from __future__ import annotations

import operator as _op
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import (
    ErrorCode,
    InvalidSearchSpec,
    InvalidSearchType,
    SearchSpecProblem,
)


class Operator(str, Enum):
    """Comparison operators allowed in a search condition."""

    EQ = "EQ"
    NE = "NE"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"


class Combinator(str, Enum):
    """How the conditions of a spec are combined."""

    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class SearchCondition:
    """One ``column operator value`` condition."""

    column: str
    operator: Operator
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"column": self.column, "operator": self.operator.value, "value": self.value}


ConditionLike = Union[SearchCondition, Mapping[str, Any]]

_PY_OPS: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _op.eq,
    Operator.NE: _op.ne,
    Operator.LT: _op.lt,
    Operator.LE: _op.le,
    Operator.GT: _op.gt,
    Operator.GE: _op.ge,
}

_SQL_OPS: Dict[Operator, str] = {
    Operator.EQ: "=",
    Operator.NE: "<>",
    Operator.LT: "<",
    Operator.LE: "<=",
    Operator.GT: ">",
    Operator.GE: ">=",
}

_MISSING = object()


def parse_operator(value: Any) -> Optional[Operator]:
    """Accept an Operator or its name in any case; None if not one of the six."""
    if isinstance(value, Operator):
        return value
    if isinstance(value, str):
        try:
            return Operator(value.upper())
        except ValueError:
            return None
    return None


def parse_combinator(value: Any) -> Combinator:
    """Accept a Combinator or "AND"/"OR" in any case.

    Raises:
        InvalidSearchType: For anything else
    """
    if isinstance(value, Combinator):
        return value
    if isinstance(value, str):
        try:
            return Combinator(value.upper())
        except ValueError:
            pass
    raise InvalidSearchType(value)


def _field(condition: ConditionLike, name: str) -> Any:
    if isinstance(condition, SearchCondition):
        return getattr(condition, name)
    if isinstance(condition, Mapping):
        return condition.get(name, _MISSING)
    return _MISSING


def validate_spec(spec: Sequence[ConditionLike]) -> List[SearchSpecProblem]:
    """Return every problem in ``spec`` (empty list if it is valid)."""
    if len(spec) == 0:
        return [SearchSpecProblem(-1, "specArray is empty", ErrorCode.SPEC_ARRAY_IS_EMPTY)]

    problems: List[SearchSpecProblem] = []
    for i, condition in enumerate(spec):
        column = _field(condition, "column")
        if column is _MISSING or not isinstance(column, str):
            problems.append(
                SearchSpecProblem(
                    i,
                    "Invalid search condition, column field not found or not string",
                    ErrorCode.SPEC_INVALID_COLUMN,
                )
            )

        value = _field(condition, "value")
        if value is _MISSING or value is None:
            problems.append(
                SearchSpecProblem(
                    i,
                    "Invalid search condition, value to match not found",
                    ErrorCode.SPEC_NO_VALUE,
                )
            )
        elif not isinstance(value, (str, int, float)):
            problems.append(
                SearchSpecProblem(
                    i,
                    f"Invalid search condition, value must be a string or a number, "
                    f"got {type(value).__name__}",
                    ErrorCode.SPEC_NO_VALUE,
                )
            )

        raw_operator = _field(condition, "operator")
        if raw_operator is _MISSING or raw_operator is None:
            problems.append(
                SearchSpecProblem(
                    i,
                    "Invalid search condition, no actual condition found",
                    ErrorCode.SPEC_INVALID_CONDITION,
                )
            )
        elif parse_operator(raw_operator) is None:
            problems.append(
                SearchSpecProblem(
                    i,
                    f"Invalid condition type : {raw_operator!r}",
                    ErrorCode.SPEC_INVALID_CONDITION,
                )
            )
    return problems


def check_spec(
    spec: Sequence[ConditionLike],
    combinator: Any = Combinator.AND,
) -> Tuple[List[SearchCondition], Combinator]:
    """Validate a spec and its combinator and return them normalised.

    Raises:
        InvalidSearchSpec: With all problems found in the search spec
        InvalidSearchType: If the combinator is not AND or OR
    """
    problems = validate_spec(spec)
    if problems:
        raise InvalidSearchSpec(problems)
    parsed_combinator = parse_combinator(combinator)
    conditions = [
        SearchCondition(
            column=_field(c, "column"),
            operator=parse_operator(_field(c, "operator")),  # type: ignore[arg-type]
            value=_field(c, "value"),
        )
        for c in spec
    ]
    return conditions, parsed_combinator


def equality_spec(partial_row: Mapping[str, Any]) -> List[SearchCondition]:
    """An EQ condition for every key of ``partial_row``."""
    return [SearchCondition(column, Operator.EQ, value) for column, value in partial_row.items()]


def _as_text(stored: Any) -> str:
    if isinstance(stored, bool):
        return str(int(stored))
    return str(stored)


def as_number(stored: Any) -> Optional[Union[int, float]]:
    if isinstance(stored, bool):
        return int(stored)
    if isinstance(stored, (int, float)):
        return stored
    if isinstance(stored, str):
        for convert in (int, float):
            try:
                return convert(stored)
            except ValueError:
                continue
    return None


def _stored_number(stored: Any) -> Optional[Union[int, float]]:
    # Matches SQLite's typeof() in ('integer', 'real')
    if isinstance(stored, bool):
        return int(stored)
    if isinstance(stored, (int, float)):
        return stored
    return None


def condition_holds(row: Mapping[str, Any], condition: SearchCondition) -> bool:
    """Evaluate one condition against one row."""
    stored = row.get(condition.column)
    if stored is None:
        return False
    compare = _PY_OPS[condition.operator]
    if isinstance(condition.value, str):
        return compare(_as_text(stored).encode("utf-8"), condition.value.encode("utf-8"))
    left = _stored_number(stored)
    if left is None:
        return False
    right = int(condition.value) if isinstance(condition.value, bool) else condition.value
    return compare(left, right)


def matches(
    row: Mapping[str, Any],
    conditions: Sequence[SearchCondition],
    combinator: Combinator = Combinator.AND,
) -> bool:
    """Whether ``row`` satisfies already validated ``conditions``."""
    results = (condition_holds(row, c) for c in conditions)
    if combinator is Combinator.OR:
        return any(results)
    return all(results)


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQL."""
    return '"' + name.replace('"', '""') + '"'


def to_sql_where(
    conditions: Sequence[SearchCondition],
    combinator: Combinator = Combinator.AND,
) -> Tuple[str, List[Any]]:
    """Render already validated conditions as a WHERE fragment and parameters.

    Example:
        >>> to_sql_where([SearchCondition("name", Operator.EQ, "Ada")])
        ('(CAST("name" AS TEXT) = ?)', ['Ada'])
    """
    fragments: List[str] = []
    params: List[Any] = []
    for c in conditions:
        column = quote_identifier(c.column)
        op = _SQL_OPS[c.operator]
        if isinstance(c.value, str):
            fragments.append(f"CAST({column} AS TEXT) {op} ?")
        else:
            fragments.append(f"(typeof({column}) IN ('integer', 'real') AND {column} {op} ?)")
        params.append(int(c.value) if isinstance(c.value, bool) else c.value)
    glue = " OR " if combinator is Combinator.OR else " AND "
    return "(" + glue.join(fragments) + ")", params
