"""Custom exception classes for table migration."""

from __future__ import annotations


class MigrationException(Exception):
    """Base exception for all migration-related errors."""
    
    def __init__(self, message: str, table_name: str = None, **kwargs):
        super().__init__(message)
        self.table_name = table_name
        self.details = kwargs


class ConnectivityError(MigrationException):
    """Exception raised when a database connection cannot be opened."""
    
    def __init__(self, message: str, database: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.database = database


class QueryError(MigrationException):
    """Exception raised when counting or reading source rows fails.

    Typical causes are a malformed filter predicate or a missing table.
    """
    pass


class BatchWriteError(MigrationException):
    """Exception raised when a row insert fails and its batch is rolled back."""
    
    def __init__(
        self,
        message: str,
        table_name: str = None,
        batch_number: int = None,
        row_index: int = None,
        **kwargs
    ):
        super().__init__(message, table_name=table_name, **kwargs)
        self.batch_number = batch_number
        self.row_index = row_index


class EraseError(MigrationException):
    """Exception raised when clearing a target table fails."""
    pass


class MappingValidationError(MigrationException):
    """Exception raised when source and target column lists cannot be paired."""
    
    def __init__(self, message: str, source_columns=None, target_columns=None, **kwargs):
        super().__init__(message, **kwargs)
        self.source_columns = list(source_columns or [])
        self.target_columns = list(target_columns or [])
