"""Oracle connector used as the migration target."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

try:
    import oracledb
    ORACLEDB_AVAILABLE = True
except ImportError:
    ORACLEDB_AVAILABLE = False
    oracledb = None  # type: ignore

from .base_connector import BaseConnector

logger = logging.getLogger(__name__)


class OracleConnector(BaseConnector):
    """Connector for writing to Oracle through python-oracledb."""

    name = "Oracle"

    def __init__(self, connection_config: Dict[str, Any]):
        """Initialize Oracle connector with connection configuration.

        Args:
            connection_config: Dictionary containing:
                - dsn: Complete DSN or Easy Connect string (alternative to host)
                - host: Server hostname or IP (required without dsn)
                - port: Port number (optional, default: 1521)
                - service_name: Service name (optional, alternative to SID)
                - database: SID (required without dsn or service_name)
                - user or username: Username (required)
                - password: Password (required)
                - preserve_identifier_case: Quote column names exactly as mapped
                  instead of folding them to upper case (optional, default: False)
        """
        if not ORACLEDB_AVAILABLE:
            raise ImportError(
                "oracledb is not installed. "
                "Install it with: pip install oracledb"
            )

        # Normalize field names: accept both 'username' and 'user'
        if "username" in connection_config and "user" not in connection_config:
            connection_config = dict(connection_config, user=connection_config["username"])

        super().__init__(connection_config)
        self.preserve_identifier_case = bool(self.config.get("preserve_identifier_case", False))

    def _validate_config(self) -> None:
        """Validate that required connection parameters are present."""
        required = ["user", "password"]
        if not self.config.get("dsn"):
            required.insert(0, "host")
        missing = [key for key in required if not self.config.get(key)]
        if missing:
            raise ValueError(f"Missing required connection parameters: {', '.join(missing)}")

        # Either database (SID) or service_name must be provided
        if not self.config.get("dsn") and not self.config.get("database") and not self.config.get("service_name"):
            raise ValueError("Either 'database' (SID) or 'service_name' must be provided")

    @property
    def transient_errors(self) -> Tuple[Type[BaseException], ...]:
        return (oracledb.OperationalError, oracledb.InterfaceError)

    def describe(self) -> str:
        if self.config.get("dsn"):
            return f"Oracle {self.config['dsn']}"
        target = self.config.get("service_name") or self.config.get("database")
        return f"Oracle {self.config['host']}:{self.config.get('port', 1521)}/{target}"

    def _build_dsn(self) -> str:
        """Build Oracle DSN (Data Source Name) string.

        Returns:
            DSN string for Oracle connection
        """
        if self.config.get("dsn"):
            return self.config["dsn"]

        host = self.config["host"]
        port = int(self.config.get("port", 1521))

        # Use service_name if provided, otherwise use database (SID)
        if self.config.get("service_name"):
            return oracledb.makedsn(host, port, service_name=self.config["service_name"])
        return oracledb.makedsn(host, port, sid=self.config["database"])

    def _open_connection(self):
        """Establish connection to Oracle.

        Returns:
            Oracle connection object (autocommit is off by default)
        """
        conn = oracledb.connect(
            user=self.config["user"],
            password=self.config["password"],
            dsn=self._build_dsn()
        )
        # call_timeout is in milliseconds; 0 disables it
        conn.call_timeout = self.command_timeout * 1000
        return conn

    def quote_identifier(self, identifier: str) -> str:
        # Unquoted Oracle identifiers are stored upper case
        name = identifier if self.preserve_identifier_case else identifier.upper()
        return '"' + name.replace('"', '""') + '"'

    def placeholder(self, position: int) -> str:
        return f":{position}"

    def build_page_query(
        self,
        table: str,
        where: Optional[str],
        offset: int,
        limit: int,
        order_by: Optional[str] = None
    ) -> str:
        order_clause = f" ORDER BY {order_by}" if order_by else ""
        return (
            f"SELECT * FROM {table}{self.where_clause(where)}{order_clause} "
            f"OFFSET {int(offset)} ROWS FETCH NEXT {int(limit)} ROWS ONLY"
        )

    def build_list_tables_query(self) -> str:
        return "SELECT TABLE_NAME FROM USER_TABLES ORDER BY TABLE_NAME"
