"""SQL Server connector used as the migration source."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

try:
    import pyodbc

    SQLSERVER_AVAILABLE = True
except ImportError:
    SQLSERVER_AVAILABLE = False
    pyodbc = None  # type: ignore

from .base_connector import BaseConnector

logger = logging.getLogger(__name__)

DRIVER_CANDIDATES = [
    "ODBC Driver 18 for SQL Server",
    "ODBC Driver 17 for SQL Server",
    "ODBC Driver 13 for SQL Server",
    "SQL Server Native Client 11.0",
    "SQL Server",
    "FreeTDS",
]


class SQLServerConnector(BaseConnector):
    """Connector for reading from SQL Server through pyodbc."""

    name = "SQL Server"

    def __init__(self, connection_config: Dict[str, Any]):
        """Initialize SQL Server connector with connection configuration.

        Args:
            connection_config: Dictionary containing either:
                - connection_string: Complete ODBC connection string
                or:
                - server: Server hostname or IP (required)
                - port: Port number (optional, default: 1433)
                - database: Database name (optional, default: master)
                - username or user: Username (required)
                - password: Password (required)
                - driver: ODBC driver name (optional, auto-detected)
                - trust_server_certificate: Trust server certificate (optional, default: False)
                - encrypt: Encrypt connection (optional, default: True)
                - login_timeout: Seconds to wait for login (optional, default: 30)
        """
        if not SQLSERVER_AVAILABLE:
            raise ImportError(
                "pyodbc is not installed. "
                "Install it with: pip install pyodbc"
            )

        # Normalize field names: accept both 'username' and 'user'
        if "username" in connection_config and "user" not in connection_config:
            connection_config = dict(connection_config, user=connection_config["username"])

        super().__init__(connection_config)

    def _validate_config(self) -> None:
        """Validate that required connection parameters are present."""
        if self.config.get("connection_string"):
            return
        required = ["server", "user", "password"]
        missing = [key for key in required if not self.config.get(key)]
        if missing:
            raise ValueError(f"Missing required connection parameters: {', '.join(missing)}")

    @property
    def transient_errors(self) -> Tuple[Type[BaseException], ...]:
        return (pyodbc.OperationalError, pyodbc.InterfaceError)

    def describe(self) -> str:
        if self.config.get("connection_string"):
            return "SQL Server (connection string)"
        return (
            f"SQL Server {self.config['server']},{self.config.get('port', 1433)}"
            f"/{self.config.get('database', 'master')}"
        )

    def _escape_odbc_password(self, password: str) -> str:
        """Escape a password for an ODBC connection string.

        Values containing delimiters are wrapped in braces, with closing
        braces doubled, per the ODBC connection string grammar.
        """
        password_str = str(password)
        if any(ch in password_str for ch in ";{}=") or password_str != password_str.strip():
            return "{" + password_str.replace("}", "}}") + "}"
        return password_str

    def _detect_odbc_driver(self) -> Optional[str]:
        """Detect available ODBC driver for SQL Server.

        Returns:
            Driver name if found, None otherwise
        """
        available_drivers = pyodbc.drivers()
        logger.debug(f"Available ODBC drivers: {available_drivers}")

        for driver_name in DRIVER_CANDIDATES:
            if driver_name in available_drivers:
                logger.info(f"Detected ODBC driver: {driver_name}")
                return driver_name

        for driver_name in available_drivers:
            if "sql server" in driver_name.lower():
                logger.info(f"Detected ODBC driver (fallback): {driver_name}")
                return driver_name

        logger.warning(f"No SQL Server ODBC driver found. Available drivers: {available_drivers}")
        return None

    def _build_connection_string(self) -> str:
        """Build SQL Server connection string.

        Returns:
            Connection string for pyodbc
        """
        if self.config.get("connection_string"):
            return self.config["connection_string"]

        server = self.config["server"]
        port = self.config.get("port", 1433)
        database = self.config.get("database", "master")
        driver = self.config.get("driver") or self._detect_odbc_driver()
        trust_cert = self.config.get("trust_server_certificate", False)
        encrypt = self.config.get("encrypt", True)

        if not driver:
            raise ValueError(
                "No ODBC driver found for SQL Server. "
                "Please install Microsoft ODBC Driver for SQL Server."
            )

        logger.debug(
            f"Connection string (password hidden): DRIVER={{{driver}}};"
            f"SERVER={server},{port};DATABASE={database};UID={self.config['user']};..."
        )
        return (
            f"DRIVER={{{driver}}};"
            f"SERVER={server},{port};"
            f"DATABASE={database};"
            f"UID={self.config['user']};"
            f"PWD={self._escape_odbc_password(self.config['password'])};"
            f"TrustServerCertificate={'yes' if trust_cert else 'no'};"
            f"Encrypt={'yes' if encrypt else 'no'};"
        )

    def _open_connection(self):
        """Establish connection to SQL Server.

        Returns:
            SQL Server connection object (pyodbc.Connection)
        """
        conn = pyodbc.connect(
            self._build_connection_string(),
            autocommit=False,
            timeout=int(self.config.get("login_timeout", 30))
        )
        # Per-statement timeout in seconds; 0 disables it
        conn.timeout = self.command_timeout
        return conn

    def quote_identifier(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def placeholder(self, position: int) -> str:
        return "?"

    def build_page_query(
        self,
        table: str,
        where: Optional[str],
        offset: int,
        limit: int,
        order_by: Optional[str] = None
    ) -> str:
        # OFFSET/FETCH requires an ORDER BY; (SELECT NULL) leaves the order unspecified
        return (
            f"SELECT * FROM {table}{self.where_clause(where)} "
            f"ORDER BY {order_by or '(SELECT NULL)'} "
            f"OFFSET {int(offset)} ROWS FETCH NEXT {int(limit)} ROWS ONLY"
        )

    def build_list_tables_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME"
        )
