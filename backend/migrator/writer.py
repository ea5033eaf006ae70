"""Transactional batch insertion and table clearing on the target database."""

from __future__ import annotations

import logging
from typing import Optional

from migrator.column_mapping import ColumnPlan, ValueTransformer
from migrator.connectors.base_connector import BaseConnector
from migrator.exceptions import BatchWriteError, EraseError
from migrator.models import Batch

logger = logging.getLogger(__name__)


def _rollback(target: BaseConnector, conn, table_name: str) -> None:
    try:
        conn.rollback()
    except Exception as e:
        logger.error(f"Rollback failed on {target.name} for {table_name}: {e}")


class TargetWriter:
    """Write one batch to the target inside a single transaction.

    Every row is inserted with the same statement, built once from the
    column plan, and bound positionally. The first failing row rolls back
    the whole batch; earlier batches stay committed.
    """

    def __init__(self, target: BaseConnector):
        self.target = target

    def write(
        self,
        table_name: str,
        batch: Batch,
        plan: ColumnPlan,
        transformer: Optional[ValueTransformer] = None,
        batch_number: Optional[int] = None
    ) -> int:
        """Insert every row of the batch and commit once.

        Returns:
            Number of rows inserted

        Raises:
            ConnectivityError: If the target cannot be reached.
            BatchWriteError: If any insert or the commit fails; nothing from
                this batch remains in the target.
        """
        if batch.is_empty:
            return 0

        if plan.is_empty:
            logger.warning(
                f"No insertable columns for {table_name}; skipping {len(batch)} rows "
                f"of batch {batch_number}"
            )
            return 0

        insert_query = self.target.build_insert_query(table_name, plan.target_columns)
        logger.debug(f"Insert statement for {table_name}: {insert_query}")

        conn = self.target.connect()
        cursor = None
        row_index = None
        try:
            cursor = conn.cursor()
            for row_index, row in enumerate(batch.rows):
                cursor.execute(insert_query, plan.bind(row, transformer))
            row_index = None
            conn.commit()
        except Exception as e:
            _rollback(self.target, conn, table_name)
            position = (
                f"row {batch.offset + row_index + 1}" if row_index is not None else "commit"
            )
            logger.error(
                f"Transaction rolled back for {table_name} batch {batch_number} "
                f"(failed at {position}): {e}"
            )
            raise BatchWriteError(
                f"Failed to insert batch {batch_number} into {table_name} at {position}: {e}",
                table_name=table_name,
                batch_number=batch_number,
                row_index=row_index
            ) from e
        finally:
            self.target.close(conn, cursor)

        logger.debug(f"Inserted {len(batch)} rows into {table_name} (batch {batch_number})")
        return len(batch)


class TableEraser:
    """Delete every row of a target table in its own transaction."""

    def __init__(self, target: BaseConnector):
        self.target = target

    def erase(self, table_name: str) -> int:
        """Delete all rows of a table.

        Returns:
            Number of rows deleted (0 when the driver does not report a count)

        Raises:
            EraseError: If the target cannot be reached or the delete fails.
        """
        query = self.target.build_delete_query(table_name)
        try:
            conn = self.target.connect()
        except Exception as e:
            raise EraseError(f"Failed to clear {table_name}: {e}", table_name=table_name) from e

        cursor = None
        try:
            cursor = conn.cursor()
            logger.debug(f"Delete statement: {query}")
            cursor.execute(query)
            deleted = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            conn.commit()
        except Exception as e:
            _rollback(self.target, conn, table_name)
            logger.error(f"Failed to clear {table_name}: {e}")
            raise EraseError(f"Failed to clear {table_name}: {e}", table_name=table_name) from e
        finally:
            self.target.close(conn, cursor)

        logger.info(f"Cleared {deleted} rows from {table_name}")
        return deleted
