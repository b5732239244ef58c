"""
Integration tests for the datatable command-line tool.
"""

import json
import logging

import json_log_formatter
import pytest

from datatable.config import DataTableSettings
from datatable.store.sqlite import connect_sqlite
from datatable.temporal.engine import BitemporalTable, create_sqlite_table
from datatable.tools.cli import main, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def database(tmp_path):
    """Database file with one row versioned in 2010 and 2015."""
    path = str(tmp_path / "prices.db")
    conn = connect_sqlite(path)
    create_sqlite_table(conn, "prices", {"v": "INTEGER"})
    table = BitemporalTable.from_sqlite(conn, "prices")
    row_id = table.create_row_with_time({"v": 1}, "2010-01-01")
    table.update_row_with_time({"id": row_id, "v": 2}, "2015-01-01")
    conn.close()
    return path


class TestCli:
    """Tests for main()."""

    def test_check_clean(self, database, capsys):
        """A sound table prints no issues and exits 0."""
        with pytest.raises(SystemExit) as exc_info:
            main(["check", "--database", database, "--table", "prices"])

        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_check_finds_gap(self, database, capsys):
        """Damaged chains are printed and exit 1."""
        conn = connect_sqlite(database)
        conn.execute(
            "UPDATE prices SET validUntil = '2012-01-01 00:00:00.000000' WHERE version_id = 1"
        )
        conn.close()

        with pytest.raises(SystemExit) as exc_info:
            main(["check", "-d", database, "-t", "prices"])

        assert exc_info.value.code == 1
        issues = json.loads(capsys.readouterr().out)
        assert [i["kind"] for i in issues] == ["gap"]

    def test_history(self, database, capsys):
        """History prints every version."""
        main(["history", "--database", database, "--table", "prices", "--id", "1"])

        history = json.loads(capsys.readouterr().out)
        assert [v["v"] for v in history] == [1, 2]

    def test_get_at_time(self, database, capsys):
        """get prints the version valid at --time, or now."""
        main(["get", "-d", database, "-t", "prices", "--id", "1", "--time", "2012-01-01"])
        assert json.loads(capsys.readouterr().out)["v"] == 1

        main(["get", "-d", database, "-t", "prices", "--id", "1"])
        assert json.loads(capsys.readouterr().out)["v"] == 2

    def test_missing_row(self, database, capsys):
        """Unknown rows exit 1 with the error on stderr."""
        with pytest.raises(SystemExit) as exc_info:
            main(["history", "-d", database, "-t", "prices", "--id", "9"])

        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err

    def test_missing_table(self, database, capsys):
        """Tables without version columns are refused."""
        with pytest.raises(SystemExit) as exc_info:
            main(["check", "-d", database, "-t", "nope"])

        assert exc_info.value.code == 1
        assert "not found" in capsys.readouterr().err


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_format(self):
        """JSON format installs the JSON formatter."""
        setup_logging(DataTableSettings(log_format="json", log_level="debug"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        """Text format uses a plain formatter."""
        setup_logging(DataTableSettings())

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, json_log_formatter.JSONFormatter)
