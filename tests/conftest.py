"""
Shared fixtures.

Store fixtures are parametrised over both backends so the same test
checks that in-memory and SQLite stores behave identically.
"""

import pytest

from datatable.store.memory import InMemoryRowStore
from datatable.store.sqlite import SqliteRowStore, connect_sqlite
from datatable.temporal.engine import BitemporalTable, create_sqlite_table


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite connection."""
    conn = connect_sqlite(":memory:")
    yield conn
    conn.close()


@pytest.fixture(params=["memory", "sqlite"])
def people(request):
    """Empty people table with name and age columns."""
    if request.param == "memory":
        return InMemoryRowStore("people")
    conn = request.getfixturevalue("sqlite_conn")
    conn.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
    return SqliteRowStore(conn, "people")


@pytest.fixture(params=["memory", "sqlite"])
def prices(request):
    """Empty bitemporal table with v and name columns."""
    if request.param == "memory":
        return BitemporalTable(InMemoryRowStore("prices", id_column="version_id"))
    conn = request.getfixturevalue("sqlite_conn")
    create_sqlite_table(conn, "prices", {"v": "INTEGER", "name": "TEXT"})
    return BitemporalTable.from_sqlite(conn, "prices")
