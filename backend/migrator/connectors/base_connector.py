"""Base connector class for database connectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from migrator.exceptions import ConnectivityError, QueryError
from migrator.retry import retry

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 300
DEFAULT_CONNECT_ATTEMPTS = 3


class BaseConnector(ABC):
    """Abstract base class for all database connectors.

    A connector knows how to open a fresh DB-API connection to one database
    and how to phrase the handful of statements the migration engine needs
    in that database's dialect. Connections are never cached: every caller
    gets its own connection and is responsible for closing it.

    Table names and filter predicates are trusted operator input and are
    placed into statements verbatim. Column names are always quoted.
    """

    #: Short name used in log messages and errors.
    name = "database"

    def __init__(self, connection_config: Dict[str, Any]):
        """Initialize connector with connection configuration.

        Args:
            connection_config: Dictionary containing database connection parameters.
                Common optional keys:
                - command_timeout: Per-statement timeout in seconds (default: 300)
                - connect_attempts: Connection attempts before giving up (default: 3)
                - connect_retry_delay: Initial delay between attempts in seconds (default: 1.0)
        """
        self.config = connection_config.copy()
        self._validate_config()
        self.command_timeout = int(self.config.get("command_timeout", DEFAULT_COMMAND_TIMEOUT))
        self.connect_attempts = int(self.config.get("connect_attempts", DEFAULT_CONNECT_ATTEMPTS))
        self.connect_retry_delay = float(self.config.get("connect_retry_delay", 1.0))

    @abstractmethod
    def _validate_config(self) -> None:
        """Validate that required connection parameters are present.

        Raises:
            ValueError: If required parameters are missing.
        """
        pass

    @abstractmethod
    def _open_connection(self):
        """Open a raw DB-API connection with autocommit disabled."""
        pass

    @property
    def transient_errors(self) -> Tuple[Type[BaseException], ...]:
        """Driver errors worth retrying when opening a connection."""
        return ()

    def describe(self) -> str:
        """Human-readable location of the database, without credentials."""
        return self.name

    def connect(self):
        """Establish a new connection to the database.

        Transient driver errors are retried with exponential backoff.

        Returns:
            Database connection object (type depends on database driver).

        Raises:
            ConnectivityError: If no connection could be opened.
        """
        opener = retry(
            max_attempts=self.connect_attempts,
            delay=self.connect_retry_delay,
            exceptions=self.transient_errors
        )(self._open_connection)

        try:
            conn = opener()
        except Exception as e:
            logger.error(f"Failed to connect to {self.describe()}: {e}")
            raise ConnectivityError(
                f"Cannot connect to {self.describe()}: {e}",
                database=self.name
            ) from e

        logger.debug(f"Connected to {self.describe()}")
        return conn

    def close(self, conn, cursor=None) -> None:
        """Close a cursor and connection, ignoring errors from already-broken handles."""
        for handle in (cursor, conn):
            if handle is None:
                continue
            try:
                handle.close()
            except Exception as e:
                logger.debug(f"Error closing {self.name} handle: {e}")

    def test_connection(self) -> bool:
        """Test the database connection.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            conn = self.connect()
            self.close(conn)
            return True
        except ConnectivityError as e:
            logger.error(f"Connection test failed: {e}")
            return False

    @abstractmethod
    def quote_identifier(self, identifier: str) -> str:
        """Quote a column identifier for this dialect."""
        pass

    @abstractmethod
    def placeholder(self, position: int) -> str:
        """Positional bind placeholder for the 1-based parameter position."""
        pass

    @abstractmethod
    def build_page_query(
        self,
        table: str,
        where: Optional[str],
        offset: int,
        limit: int,
        order_by: Optional[str] = None
    ) -> str:
        """Build a SELECT returning `limit` rows starting at `offset`."""
        pass

    @abstractmethod
    def build_list_tables_query(self) -> str:
        """Build a query returning one table name per row, sorted by name."""
        pass

    @staticmethod
    def where_clause(where: Optional[str]) -> str:
        """Render an optional filter predicate as a WHERE clause."""
        if where and where.strip():
            return f" WHERE {where.strip()}"
        return ""

    def build_count_query(self, table: str, where: Optional[str] = None) -> str:
        """Build a COUNT(*) query for a table and optional filter."""
        return f"SELECT COUNT(*) FROM {table}{self.where_clause(where)}"

    def build_insert_query(self, table: str, columns: Sequence[str]) -> str:
        """Build a positional-parameter INSERT for the given target columns."""
        column_list = ", ".join(self.quote_identifier(col) for col in columns)
        placeholders = ", ".join(self.placeholder(i + 1) for i in range(len(columns)))
        return f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})"

    def build_delete_query(self, table: str) -> str:
        """Build a statement deleting every row of a table."""
        return f"DELETE FROM {table}"

    def list_tables(self) -> List[str]:
        """List base tables, sorted by name.

        Returns:
            List of table names
        """
        conn = self.connect()
        cursor = None
        try:
            cursor = conn.cursor()
            cursor.execute(self.build_list_tables_query())
            tables = [row[0] for row in cursor.fetchall()]
            logger.info(f"Found {len(tables)} tables in {self.describe()}")
            return tables
        except Exception as e:
            logger.error(f"Failed to list tables in {self.describe()}: {e}")
            raise QueryError(f"Failed to list tables in {self.describe()}: {e}") from e
        finally:
            self.close(conn, cursor)
