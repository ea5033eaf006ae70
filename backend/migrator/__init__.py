"""SQL Server to Oracle table migration package."""

from migrator.exceptions import (
    BatchWriteError,
    ConnectivityError,
    EraseError,
    MappingValidationError,
    MigrationException,
    QueryError,
)
from migrator.models import (
    Batch,
    ErasePolicy,
    MigrationOutcome,
    MigrationReport,
    MigrationState,
    TableMapping,
)
from migrator.orchestrator import MigrationOrchestrator

__all__ = [
    "Batch",
    "BatchWriteError",
    "ConnectivityError",
    "EraseError",
    "ErasePolicy",
    "MappingValidationError",
    "MigrationException",
    "MigrationOrchestrator",
    "MigrationOutcome",
    "MigrationReport",
    "MigrationState",
    "QueryError",
    "TableMapping",
]
