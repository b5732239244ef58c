"""
Consistency checks for bitemporal version chains.

For every logical id, the versions ordered by validFrom must form a chain
with no gaps and no overlaps, and at most one version may be open-ended
(validUntil == END_OF_TIME). A row with no open-ended version is a deleted
row, which is fine.

The checker is a diagnostic: it reports every violation it finds and never
raises because of bad data.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from .. import timestring
from ..timestring import END_OF_TIME, VALID_FROM, VALID_UNTIL


class IssueKind(str, Enum):
    """Kinds of chain violations."""

    INVALID_TIMESTAMP = "invalid_timestamp"
    EMPTY_INTERVAL = "empty_interval"
    GAP = "gap"
    OVERLAP = "overlap"
    MULTIPLE_CURRENT = "multiple_current"


@dataclass(frozen=True)
class ConsistencyIssue:
    """One violation found for one logical id."""

    row_id: Any
    kind: IssueKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_id": self.row_id,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


def _id_sort_key(row_id: Any) -> tuple:
    return (row_id is None, str(type(row_id)), row_id if row_id is not None else 0)


def check_chain(row_id: Any, versions: Iterable[Mapping[str, Any]]) -> List[ConsistencyIssue]:
    """Check the versions of a single logical id."""
    issues: List[ConsistencyIssue] = []
    chain: List[Mapping[str, Any]] = []

    for version in versions:
        valid_from = version.get(VALID_FROM)
        valid_until = version.get(VALID_UNTIL)
        if not (timestring.is_valid(valid_from) and timestring.is_valid(valid_until)):
            issues.append(
                ConsistencyIssue(
                    row_id,
                    IssueKind.INVALID_TIMESTAMP,
                    f"Version of row {row_id} has an invalid valid-time value",
                    {"validFrom": valid_from, "validUntil": valid_until},
                )
            )
            continue
        if valid_from >= valid_until:
            issues.append(
                ConsistencyIssue(
                    row_id,
                    IssueKind.EMPTY_INTERVAL,
                    f"Version of row {row_id} starts at or after its end",
                    {"validFrom": valid_from, "validUntil": valid_until},
                )
            )
            continue
        chain.append(version)

    chain.sort(key=lambda v: (v[VALID_FROM], v[VALID_UNTIL]))
    for prev, nxt in zip(chain, chain[1:]):
        if nxt[VALID_FROM] > prev[VALID_UNTIL]:
            kind, what = IssueKind.GAP, "Gap"
        elif nxt[VALID_FROM] < prev[VALID_UNTIL]:
            kind, what = IssueKind.OVERLAP, "Overlap"
        else:
            continue
        issues.append(
            ConsistencyIssue(
                row_id,
                kind,
                f"{what} in history of row {row_id} between {prev[VALID_UNTIL]} "
                f"and {nxt[VALID_FROM]}",
                {"previousValidUntil": prev[VALID_UNTIL], "nextValidFrom": nxt[VALID_FROM]},
            )
        )

    current = [v for v in chain if v[VALID_UNTIL] == END_OF_TIME]
    if len(current) > 1:
        issues.append(
            ConsistencyIssue(
                row_id,
                IssueKind.MULTIPLE_CURRENT,
                f"Row {row_id} has {len(current)} current versions",
                {"validFrom": [v[VALID_FROM] for v in current]},
            )
        )
    return issues


def check_consistency(
    versions: Iterable[Mapping[str, Any]],
    id_column: str = "id",
) -> List[ConsistencyIssue]:
    """Group versions by logical id and check every chain.

    Args:
        versions: Every stored version of every row
        id_column: Column holding the logical id

    Returns:
        Issues ordered by logical id; empty if all chains are sound
    """
    chains: Dict[Any, List[Mapping[str, Any]]] = defaultdict(list)
    for version in versions:
        chains[version.get(id_column)].append(version)

    issues: List[ConsistencyIssue] = []
    for row_id in sorted(chains, key=_id_sort_key):
        issues.extend(check_chain(row_id, chains[row_id]))
    return issues
