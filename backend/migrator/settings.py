"""Environment-driven configuration for migration runs."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in TRUE_VALUES


def _drop_empty(config: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in config.items() if value not in (None, "")}


class MigrationSettings:
    """Connection and batching settings for a migration run.

    Built from environment variables; see `from_env` for the names.
    """

    def __init__(
        self,
        sqlserver: Dict[str, Any],
        oracle: Dict[str, Any],
        batch_size: int = 1000,
        command_timeout: int = 300,
        connect_attempts: int = 3,
        mapping_file: str = "TableMapping.xlsx",
        log_level: str = "INFO"
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")

        self.sqlserver = sqlserver
        self.oracle = oracle
        self.batch_size = batch_size
        self.command_timeout = command_timeout
        self.connect_attempts = connect_attempts
        self.mapping_file = mapping_file
        self.log_level = log_level.upper()

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "MigrationSettings":
        """Load settings from the environment.

        A `.env` file (the given path, or one found from the working
        directory) is merged into the process environment first without
        overriding variables that are already set.

        Args:
            env_file: Explicit path to a .env file
            environ: Mapping to read instead of os.environ (skips .env loading)
        """
        if environ is None:
            load_dotenv(dotenv_path=env_file)
            environ = os.environ
        env = environ

        command_timeout = _get_int(env, "MIGRATION_COMMAND_TIMEOUT", 300)
        connect_attempts = _get_int(env, "MIGRATION_CONNECT_ATTEMPTS", 3, minimum=1)
        shared = {
            "command_timeout": command_timeout,
            "connect_attempts": connect_attempts,
        }

        sqlserver = _drop_empty({
            "connection_string": env.get("SQLSERVER_CONNECTION_STRING"),
            "server": env.get("SQLSERVER_SERVER"),
            "port": _get_int(env, "SQLSERVER_PORT", 1433, minimum=1),
            "database": env.get("SQLSERVER_DATABASE", "master"),
            "user": env.get("SQLSERVER_USER"),
            "password": env.get("SQLSERVER_PASSWORD"),
            "driver": env.get("SQLSERVER_DRIVER"),
            "trust_server_certificate": _get_bool(env, "SQLSERVER_TRUST_SERVER_CERTIFICATE", False),
            "encrypt": _get_bool(env, "SQLSERVER_ENCRYPT", True),
        })
        sqlserver.update(shared)

        oracle = _drop_empty({
            "dsn": env.get("ORACLE_DSN"),
            "host": env.get("ORACLE_HOST"),
            "port": _get_int(env, "ORACLE_PORT", 1521, minimum=1),
            "service_name": env.get("ORACLE_SERVICE_NAME"),
            "database": env.get("ORACLE_SID"),
            "user": env.get("ORACLE_USER"),
            "password": env.get("ORACLE_PASSWORD"),
            "preserve_identifier_case": _get_bool(env, "ORACLE_PRESERVE_IDENTIFIER_CASE", False),
        })
        oracle.update(shared)

        return cls(
            sqlserver=sqlserver,
            oracle=oracle,
            batch_size=_get_int(env, "MIGRATION_BATCH_SIZE", 1000, minimum=1),
            command_timeout=command_timeout,
            connect_attempts=connect_attempts,
            mapping_file=env.get("MIGRATION_MAPPING_FILE") or "TableMapping.xlsx",
            log_level=env.get("MIGRATION_LOG_LEVEL") or "INFO",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, hiding secrets."""
        def _mask(config: Dict[str, Any]) -> Dict[str, Any]:
            masked = dict(config)
            for key in ("password", "connection_string"):
                if key in masked:
                    masked[key] = "***"
            return masked

        return {
            "sqlserver": _mask(self.sqlserver),
            "oracle": _mask(self.oracle),
            "batch_size": self.batch_size,
            "command_timeout": self.command_timeout,
            "connect_attempts": self.connect_attempts,
            "mapping_file": self.mapping_file,
            "log_level": self.log_level,
        }
