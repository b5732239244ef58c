"""
Bitemporal versioning on top of a row store.
"""

from .consistency import ConsistencyIssue, IssueKind, check_consistency
from .engine import BitemporalTable, create_sqlite_table

__all__ = [
    "BitemporalTable",
    "create_sqlite_table",
    "ConsistencyIssue",
    "IssueKind",
    "check_consistency",
]
