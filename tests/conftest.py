"""Shared fixtures: SQLite-backed connectors standing in for SQL Server and Oracle."""

import sqlite3

import pytest

from migrator.connectors.base_connector import BaseConnector
from migrator.orchestrator import MigrationOrchestrator


class SQLiteConnector(BaseConnector):
    """File-backed SQLite connector with a fresh connection per call.

    Every statement executed through any connection is recorded in
    `statements`, so tests can assert what did (or did not) touch a database.
    """

    name = "SQLite"

    def __init__(self, connection_config):
        super().__init__(connection_config)
        self.statements = []
        self.connections_opened = 0

    def _validate_config(self):
        if not self.config.get("database"):
            raise ValueError("Missing required connection parameters: database")

    @property
    def transient_errors(self):
        return (sqlite3.OperationalError,)

    def describe(self):
        return f"SQLite {self.config['database']}"

    def _open_connection(self):
        conn = sqlite3.connect(self.config["database"])
        conn.set_trace_callback(self.statements.append)
        self.connections_opened += 1
        return conn

    def quote_identifier(self, identifier):
        return '"' + identifier.replace('"', '""') + '"'

    def placeholder(self, position):
        return "?"

    def build_page_query(self, table, where, offset, limit, order_by=None):
        order_clause = f" ORDER BY {order_by}" if order_by else ""
        return (
            f"SELECT * FROM {table}{self.where_clause(where)}{order_clause} "
            f"LIMIT {int(limit)} OFFSET {int(offset)}"
        )

    def build_list_tables_query(self):
        return "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"

    # Helpers for arranging and inspecting test data

    def run(self, sql, params=()):
        conn = sqlite3.connect(self.config["database"])
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def run_many(self, sql, rows):
        conn = sqlite3.connect(self.config["database"])
        try:
            conn.executemany(sql, rows)
            conn.commit()
        finally:
            conn.close()

    def fetch(self, sql, params=()):
        conn = sqlite3.connect(self.config["database"])
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()


class BrokenDeleteConnector(SQLiteConnector):
    """Target whose DELETE statements always fail."""

    def build_delete_query(self, table):
        return "DELETE FROM table_that_does_not_exist"


EMPLOYEE_ROWS = [
    (1, "Alice", 1),
    (2, "Bob", 1),
    (3, "Carol", 0),
    (4, "Dave", 1),
    (5, "Erin", 1),
    (6, "Frank", 0),
    (7, "Grace", 1),
    (8, "Heidi", 1),
    (9, "Ivan", 0),
    (10, "Judy", 1),
]


@pytest.fixture
def source_db(tmp_path):
    """Source database holding Employees (10 rows, 7 active) and Departments (2 rows)."""
    connector = SQLiteConnector({
        "database": str(tmp_path / "source.db"),
        "connect_attempts": 1,
        "connect_retry_delay": 0,
    })
    connector.run(
        "CREATE TABLE Employees (EmployeeID INTEGER, EmployeeName TEXT, IsActive INTEGER)"
    )
    connector.run_many("INSERT INTO Employees VALUES (?, ?, ?)", EMPLOYEE_ROWS)
    connector.run("CREATE TABLE Departments (DepartmentID INTEGER, DepartmentName TEXT)")
    connector.run_many(
        "INSERT INTO Departments VALUES (?, ?)",
        [(1, "Sales"), (2, "Engineering")]
    )
    return connector


@pytest.fixture
def target_db(tmp_path):
    """Target database with EMPLOYEES and DEPARTMENTS tables mirroring the source."""
    connector = SQLiteConnector({
        "database": str(tmp_path / "target.db"),
        "connect_attempts": 1,
        "connect_retry_delay": 0,
    })
    connector.run(
        "CREATE TABLE EMPLOYEES (EmployeeID INTEGER, EmployeeName TEXT, IsActive INTEGER)"
    )
    connector.run("CREATE TABLE DEPARTMENTS (DepartmentID INTEGER, DepartmentName TEXT)")
    return connector


@pytest.fixture
def orchestrator(source_db, target_db):
    return MigrationOrchestrator(source_db, target_db, batch_size=3)


@pytest.fixture
def unreachable_db(tmp_path):
    """Connector pointing into a directory that does not exist."""
    return SQLiteConnector({
        "database": str(tmp_path / "missing" / "nowhere.db"),
        "connect_attempts": 2,
        "connect_retry_delay": 0,
    })
