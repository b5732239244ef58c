"""
Unit tests for the version chain checker.
"""

from datatable.temporal.consistency import IssueKind, check_consistency
from datatable.timestring import END_OF_TIME

T2010 = "2010-01-01 00:00:00.000000"
T2015 = "2015-01-01 00:00:00.000000"
T2016 = "2016-01-01 00:00:00.000000"


def version(row_id, valid_from, valid_until, **values):
    return {"id": row_id, "validFrom": valid_from, "validUntil": valid_until, **values}


class TestCheckConsistency:
    """Tests for check_consistency."""

    def test_sound_chains(self):
        """Contiguous chains, open or closed, have no issues."""
        versions = [
            version(1, T2015, T2016),
            version(1, T2010, T2015),
            version(1, T2016, END_OF_TIME),
            version(2, T2010, T2016),
        ]
        assert check_consistency(versions) == []

    def test_gap(self):
        """A hole between versions is a gap."""
        issues = check_consistency([version(1, T2010, T2015), version(1, T2016, END_OF_TIME)])

        assert [i.kind for i in issues] == [IssueKind.GAP]
        assert issues[0].row_id == 1
        assert issues[0].details == {"previousValidUntil": T2015, "nextValidFrom": T2016}

    def test_overlap(self):
        """Versions sharing time overlap."""
        issues = check_consistency([version(1, T2010, T2016), version(1, T2015, END_OF_TIME)])
        assert [i.kind for i in issues] == [IssueKind.OVERLAP]

    def test_multiple_current(self):
        """Two open versions are reported, along with their overlap."""
        issues = check_consistency([version(1, T2010, END_OF_TIME), version(1, T2015, END_OF_TIME)])
        assert {i.kind for i in issues} == {IssueKind.OVERLAP, IssueKind.MULTIPLE_CURRENT}

    def test_bad_timestamps_and_empty_intervals(self):
        """Unparseable and backwards intervals are reported and skipped."""
        issues = check_consistency(
            [
                version(1, "2010-01-01", END_OF_TIME),
                version(2, T2016, T2015),
                version(3, T2015, T2015),
            ]
        )

        assert [(i.row_id, i.kind) for i in issues] == [
            (1, IssueKind.INVALID_TIMESTAMP),
            (2, IssueKind.EMPTY_INTERVAL),
            (3, IssueKind.EMPTY_INTERVAL),
        ]

    def test_ordered_by_id_and_idempotent(self):
        """Issues are grouped by id and the check is repeatable."""
        versions = [
            version(9, T2010, T2015),
            version(9, T2016, END_OF_TIME),
            version(3, T2010, END_OF_TIME),
            version(3, T2015, END_OF_TIME),
        ]

        first = check_consistency(versions)

        assert [i.row_id for i in first] == [3, 3, 9]
        assert check_consistency(versions) == first

    def test_custom_id_column(self):
        """The logical id column is configurable."""
        versions = [
            {"key": 1, "validFrom": T2010, "validUntil": T2015},
            {"key": 1, "validFrom": T2016, "validUntil": END_OF_TIME},
        ]

        issues = check_consistency(versions, id_column="key")

        assert issues[0].row_id == 1
        assert issues[0].to_dict()["kind"] == "gap"
