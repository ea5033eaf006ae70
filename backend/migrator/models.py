"""Data models for table migration runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from migrator.exceptions import MappingValidationError

logger = logging.getLogger(__name__)

DEFAULT_REPLACEMENT = "-"


class MigrationState(str, Enum):
    """Single-table migration state enumeration."""
    NOT_STARTED = "NOT_STARTED"
    COUNTING = "COUNTING"
    EMPTY = "EMPTY"
    MIGRATING = "MIGRATING"
    DONE = "DONE"
    FAILED = "FAILED"


class ErasePolicy(str, Enum):
    """What a multi-table run does when clearing a target table fails."""
    WARN_AND_CONTINUE = "warn_and_continue"
    FAIL_TABLE = "fail_table"


class TableMapping:
    """Pairing of one source table with one target table.

    Column map keys and substitution column names are stored lower-cased so
    every lookup is case-insensitive. Mappings are treated as read-only once
    handed to the orchestrator.
    """

    def __init__(
        self,
        source_table: str,
        target_table: str,
        active: bool = True,
        description: Optional[str] = None,
        where: Optional[str] = None,
        clear_target: bool = False,
        column_map: Optional[Dict[str, str]] = None,
        empty_columns: Optional[Iterable[str]] = None,
        replacement: Optional[str] = None,
        order_by: Optional[str] = None
    ):
        self.source_table = (source_table or "").strip()
        self.target_table = (target_table or "").strip()
        self.active = active
        self.description = description or None
        self.where = where.strip() if where and where.strip() else None
        self.clear_target = clear_target
        self.column_map = {
            key.strip().lower(): value.strip()
            for key, value in (column_map or {}).items()
            if key and key.strip() and value and value.strip()
        }
        self.empty_columns = {
            name.strip().lower() for name in (empty_columns or []) if name and name.strip()
        }
        self.replacement = DEFAULT_REPLACEMENT if replacement is None else replacement
        self.order_by = order_by.strip() if order_by and order_by.strip() else None
        self.warnings: List[str] = []

    @classmethod
    def from_column_lists(
        cls,
        source_table: str,
        target_table: str,
        source_columns: Optional[List[str]] = None,
        target_columns: Optional[List[str]] = None,
        **kwargs
    ) -> "TableMapping":
        """Create a mapping whose column map is paired from two column lists.

        A length mismatch discards the column map (identity mapping applies)
        and records a warning on the returned mapping.
        """
        warning = None
        try:
            column_map = cls.build_column_map(source_columns, target_columns)
        except MappingValidationError as e:
            warning = str(e)
            logger.warning(f"{source_table} -> {target_table}: {warning}. Using identity column mapping.")
            column_map = {}

        mapping = cls(source_table, target_table, column_map=column_map, **kwargs)
        if warning:
            mapping.warnings.append(warning)
        return mapping

    @staticmethod
    def build_column_map(
        source_columns: Optional[List[str]],
        target_columns: Optional[List[str]]
    ) -> Dict[str, str]:
        """Pair two column lists position by position.

        Returns an empty map unless both lists are supplied. Pairs where
        either side is blank are ignored.

        Raises:
            MappingValidationError: If the lists differ in length.
        """
        if not source_columns or not target_columns:
            return {}

        if len(source_columns) != len(target_columns):
            raise MappingValidationError(
                f"Source column count ({len(source_columns)}) does not match "
                f"target column count ({len(target_columns)})",
                source_columns=source_columns,
                target_columns=target_columns
            )

        column_map = {}
        for source_name, target_name in zip(source_columns, target_columns):
            source_name = (source_name or "").strip()
            target_name = (target_name or "").strip()
            if source_name and target_name:
                column_map[source_name.lower()] = target_name
        return column_map

    def validate(self) -> None:
        """Reject mappings without both table names.

        Raises:
            ValueError: If the source or target table name is blank.
        """
        missing = []
        if not self.source_table:
            missing.append("source_table")
        if not self.target_table:
            missing.append("target_table")
        if missing:
            raise ValueError(f"Invalid table mapping, missing: {', '.join(missing)}")

    def target_column(self, source_column: str) -> str:
        """Return the mapped target name, or the source name when unmapped."""
        return self.column_map.get(source_column.lower(), source_column)

    def to_dict(self) -> Dict[str, Any]:
        """Convert mapping to dictionary."""
        return {
            "source_table": self.source_table,
            "target_table": self.target_table,
            "active": self.active,
            "description": self.description,
            "where": self.where,
            "clear_target": self.clear_target,
            "column_map": dict(self.column_map),
            "empty_columns": sorted(self.empty_columns),
            "replacement": self.replacement,
            "order_by": self.order_by,
            "warnings": list(self.warnings)
        }

    def __str__(self) -> str:
        where_part = f" WHERE: {self.where}" if self.where else ""
        return (
            f"{self.source_table} -> {self.target_table} "
            f"({'active' if self.active else 'inactive'}){where_part}"
        )


class Batch:
    """One page of source rows: ordered column names plus ordered rows."""

    def __init__(
        self,
        column_names: List[str],
        rows: List[List[Any]],
        offset: int = 0
    ):
        self.column_names = list(column_names)
        self.rows = rows
        self.offset = offset

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows


class MigrationOutcome:
    """Result of migrating one table."""

    def __init__(self, source_table: str, target_table: str):
        self.source_table = source_table
        self.target_table = target_table
        self.state = MigrationState.NOT_STARTED
        self.total_rows = 0
        self.rows_migrated = 0
        self.batches = 0
        self.rows_erased: Optional[int] = None
        self.error: Optional[str] = None
        self.error_type: Optional[str] = None
        self.warnings: List[str] = []
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.state == MigrationState.DONE

    def start(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.state = MigrationState.COUNTING

    def finish(self) -> None:
        self.state = MigrationState.DONE
        self.completed_at = datetime.now(timezone.utc)

    def fail(self, error: BaseException) -> None:
        self.state = MigrationState.FAILED
        self.error = str(error)
        self.error_type = type(error).__name__
        self.completed_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert outcome to dictionary."""
        return {
            "source_table": self.source_table,
            "target_table": self.target_table,
            "state": self.state.value,
            "success": self.success,
            "total_rows": self.total_rows,
            "rows_migrated": self.rows_migrated,
            "batches": self.batches,
            "rows_erased": self.rows_erased,
            "error": self.error,
            "error_type": self.error_type,
            "warnings": list(self.warnings),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }


class MigrationReport:
    """Ordered per-table outcomes of one multi-table run."""

    def __init__(self, total_mappings: int = 0, inactive_mappings: int = 0):
        self.total_mappings = total_mappings
        self.inactive_mappings = inactive_mappings
        self.outcomes: List[MigrationOutcome] = []

    def add(self, outcome: MigrationOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def total_rows_migrated(self) -> int:
        return sum(outcome.rows_migrated for outcome in self.outcomes)

    @property
    def failures(self) -> List[MigrationOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary."""
        return {
            "total_mappings": self.total_mappings,
            "inactive_mappings": self.inactive_mappings,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total_rows_migrated": self.total_rows_migrated,
            "tables": [outcome.to_dict() for outcome in self.outcomes]
        }
