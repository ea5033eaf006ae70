"""Row counting and paginated extraction from the source database."""

from __future__ import annotations

import logging
from typing import Optional

from migrator.connectors.base_connector import BaseConnector
from migrator.exceptions import QueryError
from migrator.models import Batch

logger = logging.getLogger(__name__)


class RowCountProbe:
    """Count source rows matching a table and optional filter."""

    def __init__(self, source: BaseConnector):
        self.source = source

    def count(self, table: str, where: Optional[str] = None) -> int:
        """Return the number of rows matching the filter.

        Raises:
            ConnectivityError: If the source cannot be reached.
            QueryError: If the count query fails.
        """
        query = self.source.build_count_query(table, where)
        conn = self.source.connect()
        cursor = None
        try:
            cursor = conn.cursor()
            logger.debug(f"Count query: {query}")
            cursor.execute(query)
            row = cursor.fetchone()
            total = int(row[0]) if row and row[0] is not None else 0
            logger.debug(f"Row count for {table}: {total}")
            return total
        except Exception as e:
            logger.error(f"Failed to count rows in {table}: {e}")
            raise QueryError(f"Failed to count rows in {table}: {e}", table_name=table) from e
        finally:
            self.source.close(conn, cursor)


class BatchReader:
    """Read one page of source rows by offset and limit.

    Pages are only as stable as the ORDER BY behind them. Without an
    explicit order key, rows written to the source during a migration may
    be skipped or read twice.
    """

    def __init__(self, source: BaseConnector):
        self.source = source

    def read(
        self,
        table: str,
        where: Optional[str],
        offset: int,
        limit: int,
        order_by: Optional[str] = None
    ) -> Batch:
        """Fetch up to `limit` rows starting at `offset`.

        Raises:
            ValueError: If offset is negative or limit is not positive.
            ConnectivityError: If the source cannot be reached.
            QueryError: If the page query fails.
        """
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if limit <= 0:
            raise ValueError(f"limit must be > 0, got {limit}")

        query = self.source.build_page_query(table, where, offset, limit, order_by)
        conn = self.source.connect()
        cursor = None
        try:
            cursor = conn.cursor()
            logger.debug(f"Page query: {query}")
            cursor.execute(query)
            column_names = [description[0] for description in cursor.description or []]
            rows = [list(row) for row in cursor.fetchall()]
            logger.debug(f"Read {len(rows)} rows from {table} (offset={offset}, limit={limit})")
            return Batch(column_names, rows, offset=offset)
        except Exception as e:
            logger.error(f"Failed to read rows from {table} at offset {offset}: {e}")
            raise QueryError(
                f"Failed to read rows from {table} at offset {offset}: {e}",
                table_name=table,
                offset=offset,
                limit=limit
            ) from e
        finally:
            self.source.close(conn, cursor)
