"""
Integration tests for the SQLite row store.

Tests cover:
- Table validation at construction
- Forward-only results
- Backend errors and missing columns
- Transactions on a shared connection
"""

import sqlite3

import pytest

from datatable.config import DataTableSettings
from datatable.errors import BackendQueryError, ErrorCode, InvalidTable, ResultsConsumed
from datatable.results import ForwardOnlyResults, RestartableResults
from datatable.search import Operator, SearchCondition
from datatable.store.base import NULL_ROW_ID
from datatable.store.sqlite import SqliteRowStore, connect_sqlite


@pytest.fixture
def conn(sqlite_conn):
    """Connection with a people table."""
    sqlite_conn.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
    return sqlite_conn


@pytest.fixture
def store(conn):
    """Store over the people table."""
    return SqliteRowStore(conn, "people")


class TestTableValidation:
    """Tests for checks made at construction."""

    def test_missing_table(self, sqlite_conn):
        """A missing table is rejected."""
        with pytest.raises(InvalidTable) as exc_info:
            SqliteRowStore(sqlite_conn, "nope")
        assert exc_info.value.code == ErrorCode.TABLE_NOT_FOUND

    def test_missing_id_column(self, conn):
        """The id column must exist."""
        with pytest.raises(InvalidTable) as exc_info:
            SqliteRowStore(conn, "people", id_column="person_id")
        assert exc_info.value.code == ErrorCode.REQUIRED_COLUMN_NOT_FOUND

    def test_id_column_type(self, sqlite_conn):
        """The id column must have integer affinity."""
        sqlite_conn.execute("CREATE TABLE tags (id TEXT, label TEXT)")

        with pytest.raises(InvalidTable) as exc_info:
            SqliteRowStore(sqlite_conn, "tags")
        assert exc_info.value.code == ErrorCode.WRONG_COLUMN_TYPE

    def test_required_columns(self, conn):
        """Extra required columns are checked by name and type."""
        SqliteRowStore(conn, "people", required_columns={"name": "TEXT"})

        with pytest.raises(InvalidTable) as exc_info:
            SqliteRowStore(conn, "people", required_columns={"email": "TEXT"})
        assert exc_info.value.code == ErrorCode.REQUIRED_COLUMN_NOT_FOUND

    def test_connect_applies_settings(self, tmp_path):
        """connect_sqlite uses autocommit and the configured busy timeout."""
        conn = connect_sqlite(str(tmp_path / "db.sqlite"), DataTableSettings(sqlite_busy_timeout_ms=1234))
        try:
            assert conn.isolation_level is None
            assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 1234
        finally:
            conn.close()


class TestResults:
    """Tests for cursor-backed results."""

    def test_search_is_forward_only(self, store):
        """Search results can be traversed once."""
        store.create_row({"name": "a", "age": 1})
        store.create_row({"name": "b", "age": 2})

        results = store.search([SearchCondition("age", Operator.GE, 1)])

        assert isinstance(results, ForwardOnlyResults)
        assert len(results) == 2
        assert [r["name"] for r in results] == ["a", "b"]
        with pytest.raises(ResultsConsumed):
            list(results)

    def test_count_respects_limit(self, store):
        """The count reflects max_results."""
        for i in range(5):
            store.create_row({"age": i})

        assert store.search([SearchCondition("age", Operator.GE, 0)], "AND", 3).count() == 3


class TestBackendErrors:
    """Tests for wrapped SQLite errors."""

    def test_unknown_column_on_create(self, store):
        """Backend failures are wrapped with the query."""
        with pytest.raises(BackendQueryError) as exc_info:
            store.create_row({"email": "a@example.com"})

        error = exc_info.value
        assert isinstance(error.__cause__, sqlite3.OperationalError)
        assert error.context == "create_row"
        assert "INSERT INTO" in error.query
        assert store.reporter.error_code == ErrorCode.BACKEND_QUERY_ERROR

    def test_search_missing_column(self, store):
        """Searching a missing column finds nothing and warns."""
        store.create_row({"name": "a"})

        results = store.search([SearchCondition("email", Operator.EQ, "x")])

        assert isinstance(results, RestartableResults)
        assert len(results) == 0
        assert store.reporter.warnings[-1].code == ErrorCode.EMPTY_RESULT_SET

    def test_search_missing_column_equal_to_its_name(self, store):
        """A missing column is not read as the text of its name."""
        store.create_row({"name": "a"})

        results = store.search([SearchCondition("email", Operator.EQ, "email")])

        assert len(results) == 0
        assert store.reporter.warnings[-1].code == ErrorCode.EMPTY_RESULT_SET

    def test_or_drops_missing_column_quietly(self, store):
        """OR keeps the conditions on existing columns without warning."""
        store.create_row({"name": "a"})
        spec = [
            SearchCondition("email", Operator.NE, "x"),
            SearchCondition("name", Operator.EQ, "a"),
        ]

        results = store.search(spec, "OR")

        assert [r["name"] for r in results] == ["a"]
        assert store.reporter.warnings == []

    def test_key_value_missing_column(self, store):
        """Key lookups on missing columns return NULL_ROW_ID."""
        store.create_row({"name": "email"})
        assert store.get_id_for_key_value("email", "x") == NULL_ROW_ID
        assert store.get_id_for_key_value("email", "email") == NULL_ROW_ID

    def test_key_value_null(self, store):
        """A None value looks for NULL."""
        row_id = store.create_row({"name": "a"})
        assert store.get_id_for_key_value("age", None) == row_id

    def test_update_without_columns(self, store):
        """Updating only the id changes nothing."""
        row_id = store.create_row({"name": "a"})
        store.update_row({"id": row_id})
        assert store.get_row(row_id)["name"] == "a"


class TestTransactions:
    """Tests for transactions."""

    def test_rollback(self, store):
        """Rolled back rows disappear."""
        assert store.supports_transactions()
        store.start_transaction()
        assert store.is_in_transaction()

        row_id = store.create_row({"name": "a"})
        store.rollback()

        assert not store.is_in_transaction()
        assert not store.row_exists(row_id)

    def test_commit(self, store):
        """Committed rows stay."""
        store.start_transaction()
        row_id = store.create_row({"name": "a"})
        store.commit()

        assert store.row_exists(row_id)

    def test_transaction_spans_connection(self, conn, store):
        """A transaction started through one table covers its neighbours."""
        conn.execute("CREATE TABLE pets (id INTEGER PRIMARY KEY, name TEXT)")
        pets = SqliteRowStore(conn, "pets")

        store.start_transaction()
        pet_id = pets.create_row({"name": "Rex"})
        assert pets.is_in_transaction()
        store.rollback()

        assert not pets.row_exists(pet_id)

    def test_commit_without_transaction(self, store):
        """Committing outside a transaction is a backend error."""
        with pytest.raises(BackendQueryError):
            store.commit()
