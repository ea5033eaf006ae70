"""Database connectors package."""

from .base_connector import BaseConnector
from .sqlserver import SQLServerConnector
from .oracle import OracleConnector

__all__ = [
    "BaseConnector",
    "SQLServerConnector",
    "OracleConnector",
]
