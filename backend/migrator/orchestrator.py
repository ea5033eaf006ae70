"""Migration orchestrator - drives single-table and multi-table runs."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from migrator.column_mapping import ColumnMapper, ValueTransformer
from migrator.connectors.base_connector import BaseConnector
from migrator.exceptions import EraseError
from migrator.models import (
    ErasePolicy,
    MigrationOutcome,
    MigrationReport,
    MigrationState,
    TableMapping,
)
from migrator.reader import BatchReader, RowCountProbe
from migrator.writer import TableEraser, TargetWriter

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

ProgressCallback = Callable[[str, int, int], None]


class MigrationOrchestrator:
    """
    Orchestrates copying rows from source tables into target tables.

    Handles:
    - Row counting and offset/limit paging of the source
    - Column validation, renaming and blank-value substitution per batch
    - One target transaction per batch
    - Optional clearing of target tables
    - Multi-table runs where one table's failure does not stop the others

    Everything runs sequentially. Each count, page, batch write and erase
    opens its own connection and closes it before the next step starts.
    """

    def __init__(
        self,
        source: BaseConnector,
        target: BaseConnector,
        batch_size: int = DEFAULT_BATCH_SIZE,
        erase_policy: ErasePolicy = ErasePolicy.WARN_AND_CONTINUE,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            source: Connector for the database rows are read from
            target: Connector for the database rows are written to
            batch_size: Maximum rows read, and committed, per batch
            erase_policy: What to do when clearing a target table fails
            progress_callback: Called as (source_table, migrated_rows, total_rows)
                after every committed batch
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")

        self.source = source
        self.target = target
        self.batch_size = batch_size
        self.erase_policy = ErasePolicy(erase_policy)
        self.progress_callback = progress_callback

        self.row_count_probe = RowCountProbe(source)
        self.batch_reader = BatchReader(source)
        self.target_writer = TargetWriter(target)
        self.table_eraser = TableEraser(target)

    def list_source_tables(self) -> List[str]:
        """List the base tables of the source database."""
        tables = self.source.list_tables()
        logger.info(f"Found {len(tables)} source tables: {', '.join(tables)}")
        return tables

    def erase_target(self, table_name: str) -> int:
        """Delete all rows of a target table.

        Raises:
            EraseError: If the rows could not be deleted.
        """
        return self.table_eraser.erase(table_name)

    def migrate_table(
        self,
        source_table: str,
        target_table: str,
        where: Optional[str] = None,
        column_map: Optional[Dict[str, str]] = None,
        empty_columns: Optional[Iterable[str]] = None,
        replacement: Optional[str] = None,
        order_by: Optional[str] = None
    ) -> MigrationOutcome:
        """Migrate one table.

        Args:
            source_table: Qualified source table name
            target_table: Qualified target table name
            where: Filter predicate appended verbatim to the source WHERE clause
            column_map: Source column name -> target column name (case-insensitive keys)
            empty_columns: Source columns whose blank text values are replaced
            replacement: Replacement for blank values (default "-")
            order_by: Stable sort key for paging the source

        Returns:
            MigrationOutcome in the DONE state

        Raises:
            Any count, read or write error, unchanged.
        """
        mapping = TableMapping(
            source_table,
            target_table,
            where=where,
            column_map=column_map,
            empty_columns=empty_columns,
            replacement=replacement,
            order_by=order_by
        )
        mapping.validate()
        outcome = MigrationOutcome(mapping.source_table, mapping.target_table)
        self._run_table(mapping, outcome)
        return outcome

    def _run_table(self, mapping: TableMapping, outcome: MigrationOutcome) -> None:
        """Run the single-table state machine, recording progress on the outcome.

        Any error moves the outcome to FAILED and is re-raised.
        """
        source_table = mapping.source_table
        target_table = mapping.target_table
        logger.info(f"Starting migration of table '{source_table}' -> '{target_table}'")
        if mapping.where:
            logger.info(f"  Filter: {mapping.where}")

        outcome.start()
        try:
            total_rows = self.row_count_probe.count(source_table, mapping.where)
            outcome.total_rows = total_rows
            logger.info(f"Total rows to migrate: {total_rows}")

            if total_rows == 0:
                outcome.state = MigrationState.EMPTY
                logger.warning(f"Table '{source_table}' has no rows to migrate. Skipping.")
                outcome.finish()
                return

            if not mapping.order_by and total_rows > self.batch_size:
                message = (
                    f"Paging {source_table} without a stable order key; rows changed during "
                    f"the migration may be skipped or duplicated"
                )
                logger.warning(message)
                outcome.warnings.append(message)

            outcome.state = MigrationState.MIGRATING
            mapper = ColumnMapper(mapping.column_map)
            transformer = ValueTransformer(mapping.empty_columns, mapping.replacement)
            migrated_rows = 0
            batch_number = 0

            while migrated_rows < total_rows:
                batch_number += 1
                current_batch_size = min(self.batch_size, total_rows - migrated_rows)
                logger.info(
                    f"Processing batch {batch_number}: offset={migrated_rows}, size={current_batch_size}"
                )

                batch = self.batch_reader.read(
                    source_table,
                    mapping.where,
                    offset=migrated_rows,
                    limit=current_batch_size,
                    order_by=mapping.order_by
                )
                if batch.is_empty:
                    message = (
                        f"Source returned no rows at offset {migrated_rows} of {total_rows} "
                        f"for {source_table}; ending extraction"
                    )
                    logger.warning(message)
                    outcome.warnings.append(message)
                    break

                plan = mapper.plan(batch.column_names, source_table)
                written = self.target_writer.write(
                    target_table, batch, plan, transformer, batch_number=batch_number
                )

                migrated_rows += len(batch)
                outcome.rows_migrated += written
                outcome.batches = batch_number
                logger.info(f"Batch {batch_number} completed. Total migrated: {migrated_rows}/{total_rows}")

                if self.progress_callback:
                    self.progress_callback(source_table, migrated_rows, total_rows)

        except Exception as e:
            outcome.fail(e)
            logger.error(f"Failed to migrate table '{source_table}': {e}")
            raise

        outcome.finish()
        logger.info(
            f"Successfully migrated {outcome.rows_migrated} rows from '{source_table}' to '{target_table}'"
        )

    def migrate_from_mappings(
        self,
        mappings: List[TableMapping],
        clear_first: bool = False
    ) -> MigrationReport:
        """Migrate every active mapping in list order.

        Inactive mappings are never read, written or cleared. A failing
        table is recorded in the report and the run moves on.

        Args:
            mappings: Table mappings, in the order to migrate them
            clear_first: Clear every target before loading, in addition to
                mappings that ask for it themselves

        Returns:
            MigrationReport with one outcome per active mapping

        Raises:
            ConnectivityError: If the source or target cannot be reached at all.
        """
        active_mappings = [mapping for mapping in mappings if mapping.active]
        report = MigrationReport(
            total_mappings=len(mappings),
            inactive_mappings=len(mappings) - len(active_mappings)
        )

        logger.info("========================================")
        logger.info(f"Processing {len(active_mappings)} of {len(mappings)} mappings (active only)")
        logger.info("========================================")

        if not active_mappings:
            logger.warning("No active mappings to migrate.")
            return report

        self._check_connectivity()

        for position, mapping in enumerate(active_mappings, start=1):
            logger.info(
                f"[{position}/{len(active_mappings)}] Migrating: "
                f"{mapping.source_table} -> {mapping.target_table}"
            )
            if mapping.description:
                logger.info(f"  Description: {mapping.description}")

            outcome = self._migrate_mapping(mapping, clear_first)
            report.add(outcome)

            if outcome.success:
                logger.info(f"  Completed: {outcome.rows_migrated} rows")
            else:
                logger.error(f"  Failed: {outcome.error}")

        logger.info("========================================")
        logger.info("Migration finished")
        logger.info(f"  Succeeded: {report.succeeded} tables")
        logger.info(f"  Failed: {report.failed} tables")
        logger.info(f"  Rows migrated: {report.total_rows_migrated}")
        logger.info("========================================")

        return report

    def _migrate_mapping(self, mapping: TableMapping, clear_first: bool) -> MigrationOutcome:
        """Clear (if asked) and migrate one mapping, converting any error into a failed outcome."""
        outcome = MigrationOutcome(mapping.source_table, mapping.target_table)
        outcome.warnings.extend(mapping.warnings)

        try:
            mapping.validate()
        except ValueError as e:
            outcome.fail(e)
            return outcome

        if clear_first or mapping.clear_target:
            try:
                outcome.rows_erased = self.erase_target(mapping.target_table)
            except EraseError as e:
                if self.erase_policy == ErasePolicy.FAIL_TABLE:
                    outcome.fail(e)
                    return outcome
                message = f"Clearing {mapping.target_table} failed: {e}. Loading anyway."
                logger.warning(message)
                outcome.warnings.append(message)

        try:
            self._run_table(mapping, outcome)
        except Exception as e:
            logger.debug(f"Migration of {mapping.source_table} failed", exc_info=True)
            if outcome.state != MigrationState.FAILED:
                outcome.fail(e)

        return outcome

    def _check_connectivity(self) -> None:
        """Open and close one connection on each side.

        Raises:
            ConnectivityError: If either database cannot be reached.
        """
        for connector in (self.source, self.target):
            conn = connector.connect()
            connector.close(conn)
        logger.debug("Source and target connections verified")
