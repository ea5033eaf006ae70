"""Migration orchestrator tests against SQLite-backed source and target databases."""

import logging

import pytest

from conftest import EMPLOYEE_ROWS, BrokenDeleteConnector, SQLiteConnector
from migrator.exceptions import BatchWriteError, ConnectivityError, QueryError
from migrator.models import ErasePolicy, MigrationState, TableMapping
from migrator.orchestrator import MigrationOrchestrator


def target_rows(target_db, table="EMPLOYEES"):
    return target_db.fetch(f"SELECT * FROM {table} ORDER BY 1")


class InflatedCountConnector(SQLiteConnector):
    """Reports more rows than paging will actually return."""

    def build_count_query(self, table, where=None):
        return f"SELECT COUNT(*) + 5 FROM {table}{self.where_clause(where)}"


class TestMigrateTable:
    """Single-table flow."""

    def test_identity_migration_copies_every_row_unchanged(self, orchestrator, target_db):
        outcome = orchestrator.migrate_table("Employees", "EMPLOYEES", order_by="EmployeeID")

        assert outcome.success
        assert outcome.state == MigrationState.DONE
        assert outcome.total_rows == 10
        assert outcome.rows_migrated == 10
        assert outcome.batches == 4
        assert target_rows(target_db) == EMPLOYEE_ROWS

    def test_filter_limits_rows(self, orchestrator, target_db):
        outcome = orchestrator.migrate_table("Employees", "EMPLOYEES", where="IsActive = 1")

        assert outcome.rows_migrated == 7
        assert all(row[2] == 1 for row in target_rows(target_db))

    def test_zero_matching_rows_is_success_without_batches(self, orchestrator, target_db):
        outcome = orchestrator.migrate_table("Employees", "EMPLOYEES", where="1 = 0")

        assert outcome.success
        assert outcome.rows_migrated == 0
        assert outcome.batches == 0
        assert target_db.connections_opened == 0
        assert target_rows(target_db) == []

    def test_batch_sizes_follow_remaining_rows(self, source_db, target_db):
        progress = []
        orchestrator = MigrationOrchestrator(
            source_db, target_db, batch_size=4,
            progress_callback=lambda table, done, total: progress.append((table, done, total))
        )

        orchestrator.migrate_table("Employees", "EMPLOYEES", order_by="EmployeeID")

        assert progress == [("Employees", 4, 10), ("Employees", 8, 10), ("Employees", 10, 10)]
        page_queries = [s for s in source_db.statements if s.startswith("SELECT * FROM Employees")]
        assert [q.split("LIMIT ")[1] for q in page_queries] == [
            "4 OFFSET 0", "4 OFFSET 4", "2 OFFSET 8"
        ]

    def test_column_map_renames_target_columns(self, source_db, target_db):
        target_db.run("CREATE TABLE EMP_RENAMED (EMP_ID INTEGER, EMP_NAME TEXT, IsActive INTEGER)")
        orchestrator = MigrationOrchestrator(source_db, target_db, batch_size=5)

        outcome = orchestrator.migrate_table(
            "Employees",
            "EMP_RENAMED",
            column_map={"employeeid": "EMP_ID", "EMPLOYEENAME": "EMP_NAME"},
            order_by="EmployeeID"
        )

        assert outcome.rows_migrated == 10
        assert target_db.fetch("SELECT EMP_ID, EMP_NAME FROM EMP_RENAMED ORDER BY EMP_ID")[0] == (1, "Alice")

    def test_blank_values_replaced_in_designated_columns(self, source_db, target_db):
        source_db.run("CREATE TABLE People (Id INTEGER, Name TEXT, Note TEXT)")
        source_db.run_many(
            "INSERT INTO People VALUES (?, ?, ?)",
            [(1, "   ", ""), (2, None, None), (3, "", " "), (4, "Bob", "x")]
        )
        target_db.run("CREATE TABLE PEOPLE (Id INTEGER, Name TEXT, Note TEXT)")
        orchestrator = MigrationOrchestrator(source_db, target_db)

        orchestrator.migrate_table("People", "PEOPLE", empty_columns={"name"}, replacement="-")

        assert target_db.fetch("SELECT * FROM PEOPLE ORDER BY Id") == [
            (1, "-", ""),
            (2, None, None),
            (3, "-", " "),
            (4, "Bob", "x"),
        ]

    def test_invalid_column_names_are_left_out(self, source_db, target_db, caplog):
        source_db.run('CREATE TABLE Odd (Id INTEGER, "bad col" TEXT, Ok TEXT)')
        source_db.run("INSERT INTO Odd VALUES (1, 'dropped', 'kept')")
        target_db.run("CREATE TABLE ODD (Id INTEGER, Ok TEXT)")
        orchestrator = MigrationOrchestrator(source_db, target_db)

        with caplog.at_level(logging.WARNING):
            outcome = orchestrator.migrate_table("Odd", "ODD")

        assert outcome.rows_migrated == 1
        assert target_db.fetch("SELECT * FROM ODD") == [(1, "kept")]
        assert "bad col" in caplog.text

    def test_column_name_with_trailing_newline_is_left_out(self, source_db, target_db):
        source_db.run('CREATE TABLE Notes (Id INTEGER, "Note\n" TEXT)')
        source_db.run("INSERT INTO Notes VALUES (1, 'dropped')")
        target_db.run("CREATE TABLE NOTES (Id INTEGER)")
        orchestrator = MigrationOrchestrator(source_db, target_db)

        outcome = orchestrator.migrate_table("Notes", "NOTES")

        assert outcome.success
        assert target_db.fetch("SELECT * FROM NOTES") == [(1,)]

    def test_rows_without_valid_columns_are_skipped(self, source_db, target_db):
        source_db.run('CREATE TABLE Junk ("a b" TEXT, "c-d" TEXT)')
        source_db.run_many("INSERT INTO Junk VALUES (?, ?)", [("x", "y")] * 5)
        orchestrator = MigrationOrchestrator(source_db, target_db, batch_size=2)

        outcome = orchestrator.migrate_table("Junk", "EMPLOYEES")

        assert outcome.success
        assert outcome.total_rows == 5
        assert outcome.rows_migrated == 0
        assert outcome.batches == 3
        assert target_db.connections_opened == 0
        assert target_rows(target_db) == []

    def test_failed_row_rolls_back_only_its_batch(self, source_db, target_db):
        target_db.run(
            "CREATE TABLE STRICT_EMP (EmployeeID INTEGER CHECK (EmployeeID <> 5), "
            "EmployeeName TEXT, IsActive INTEGER)"
        )
        orchestrator = MigrationOrchestrator(source_db, target_db, batch_size=3)

        with pytest.raises(BatchWriteError) as exc_info:
            orchestrator.migrate_table("Employees", "STRICT_EMP", order_by="EmployeeID")

        assert exc_info.value.batch_number == 2
        assert exc_info.value.row_index == 1
        assert exc_info.value.table_name == "STRICT_EMP"
        assert target_db.fetch("SELECT EmployeeID FROM STRICT_EMP ORDER BY 1") == [(1,), (2,), (3,)]

    def test_malformed_filter_raises_query_error(self, orchestrator):
        with pytest.raises(QueryError) as exc_info:
            orchestrator.migrate_table("Employees", "EMPLOYEES", where="NoSuchColumn = 1")

        assert exc_info.value.table_name == "Employees"
        assert exc_info.value.__cause__ is not None

    def test_short_page_ends_extraction(self, tmp_path, source_db, target_db, caplog):
        source = InflatedCountConnector(dict(source_db.config))
        orchestrator = MigrationOrchestrator(source, target_db, batch_size=4)

        with caplog.at_level(logging.WARNING):
            outcome = orchestrator.migrate_table("Employees", "EMPLOYEES", order_by="EmployeeID")

        assert outcome.success
        assert outcome.total_rows == 15
        assert outcome.rows_migrated == 10
        assert any("no rows at offset" in w for w in outcome.warnings)

    def test_unordered_paging_is_reported(self, orchestrator):
        outcome = orchestrator.migrate_table("Employees", "EMPLOYEES")

        assert outcome.success
        assert any("stable order key" in w for w in outcome.warnings)

    def test_blank_table_name_rejected(self, orchestrator, source_db):
        with pytest.raises(ValueError):
            orchestrator.migrate_table("Employees", "  ")

        assert source_db.connections_opened == 0

    def test_unreachable_source_raises_connectivity_error(self, unreachable_db, target_db):
        orchestrator = MigrationOrchestrator(unreachable_db, target_db)

        with pytest.raises(ConnectivityError):
            orchestrator.migrate_table("Employees", "EMPLOYEES")

    def test_rejects_non_positive_batch_size(self, source_db, target_db):
        with pytest.raises(ValueError):
            MigrationOrchestrator(source_db, target_db, batch_size=0)


class TestMigrateFromMappings:
    """Multi-table flow."""

    def test_inactive_mappings_are_never_touched(self, orchestrator, source_db, target_db):
        mappings = [
            TableMapping("Employees", "EMPLOYEES", active=False, clear_target=True),
            TableMapping("Departments", "DEPARTMENTS", active=False),
        ]

        report = orchestrator.migrate_from_mappings(mappings, clear_first=True)

        assert report.succeeded == 0
        assert report.failed == 0
        assert report.inactive_mappings == 2
        assert source_db.statements == []
        assert target_db.statements == []

    def test_filtered_clear_and_load_scenario(self, orchestrator, source_db, target_db):
        target_db.run_many(
            "INSERT INTO EMPLOYEES VALUES (?, ?, ?)",
            [(100, "Stale", 1), (101, "Stale", 0)]
        )
        target_db.run("INSERT INTO DEPARTMENTS VALUES (9, 'Untouched')")
        mappings = [
            TableMapping("Employees", "EMPLOYEES", where="IsActive = 1", clear_target=True),
            TableMapping("Departments", "DEPARTMENTS", active=False),
        ]

        report = orchestrator.migrate_from_mappings(mappings)

        assert report.succeeded == 1
        assert report.failed == 0
        assert report.outcomes[0].rows_erased == 2
        assert len(target_rows(target_db)) == 7
        assert target_rows(target_db, "DEPARTMENTS") == [(9, "Untouched")]
        assert not any("Departments" in s for s in source_db.statements)

    def test_one_failure_does_not_stop_later_tables(self, orchestrator, target_db):
        mappings = [
            TableMapping("NoSuchTable", "EMPLOYEES"),
            TableMapping("Departments", "DEPARTMENTS"),
        ]

        report = orchestrator.migrate_from_mappings(mappings)

        assert report.succeeded == 1
        assert report.failed == 1
        failed = report.outcomes[0]
        assert failed.state == MigrationState.FAILED
        assert failed.error_type == "QueryError"
        assert report.outcomes[1].rows_migrated == 2
        assert len(target_rows(target_db, "DEPARTMENTS")) == 2

    def test_invalid_mapping_recorded_as_failure(self, orchestrator):
        report = orchestrator.migrate_from_mappings([
            TableMapping("", "EMPLOYEES"),
            TableMapping("Departments", "DEPARTMENTS"),
        ])

        assert report.failed == 1
        assert report.outcomes[0].error_type == "ValueError"
        assert report.succeeded == 1

    def test_rerun_without_clear_appends_duplicates(self, orchestrator, target_db):
        mappings = [TableMapping("Employees", "EMPLOYEES")]

        orchestrator.migrate_from_mappings(mappings)
        orchestrator.migrate_from_mappings(mappings)

        assert len(target_rows(target_db)) == 20

    def test_rerun_with_clear_is_stable(self, orchestrator, target_db):
        mappings = [TableMapping("Employees", "EMPLOYEES")]

        orchestrator.migrate_from_mappings(mappings, clear_first=True)
        first = len(target_rows(target_db))
        orchestrator.migrate_from_mappings(mappings, clear_first=True)

        assert first == len(target_rows(target_db)) == 10

    def test_erase_failure_warns_and_loads_by_default(self, source_db, target_db, caplog):
        target = BrokenDeleteConnector(dict(target_db.config))
        orchestrator = MigrationOrchestrator(source_db, target)

        with caplog.at_level(logging.WARNING):
            report = orchestrator.migrate_from_mappings(
                [TableMapping("Employees", "EMPLOYEES", clear_target=True)]
            )

        outcome = report.outcomes[0]
        assert outcome.success
        assert outcome.rows_migrated == 10
        assert any("Loading anyway" in w for w in outcome.warnings)
        assert "Loading anyway" in caplog.text

    def test_erase_failure_fails_table_under_strict_policy(self, source_db, target_db):
        target = BrokenDeleteConnector(dict(target_db.config))
        orchestrator = MigrationOrchestrator(source_db, target, erase_policy=ErasePolicy.FAIL_TABLE)

        report = orchestrator.migrate_from_mappings(
            [TableMapping("Employees", "EMPLOYEES", clear_target=True)]
        )

        assert report.failed == 1
        assert report.outcomes[0].error_type == "EraseError"
        assert target_rows(target_db) == []

    def test_mapping_warnings_carried_into_outcome(self, orchestrator):
        mapping = TableMapping.from_column_lists(
            "Departments", "DEPARTMENTS",
            source_columns=["A", "B", "C"],
            target_columns=["X", "Y"],
        )

        report = orchestrator.migrate_from_mappings([mapping])

        assert report.succeeded == 1
        assert len(report.outcomes[0].warnings) == 1

    def test_unreachable_target_aborts_run(self, source_db, unreachable_db):
        orchestrator = MigrationOrchestrator(source_db, unreachable_db)

        with pytest.raises(ConnectivityError):
            orchestrator.migrate_from_mappings([TableMapping("Employees", "EMPLOYEES")])

    def test_report_to_dict(self, orchestrator):
        report = orchestrator.migrate_from_mappings([
            TableMapping("Departments", "DEPARTMENTS"),
            TableMapping("Projects", "PROJECTS", active=False),
        ])

        data = report.to_dict()
        assert data["succeeded"] == 1
        assert data["failed"] == 0
        assert data["inactive_mappings"] == 1
        assert data["tables"][0]["state"] == "DONE"
        assert data["tables"][0]["rows_migrated"] == 2


class TestStandaloneOperations:

    def test_erase_target_returns_deleted_count(self, orchestrator, target_db):
        target_db.run_many("INSERT INTO DEPARTMENTS VALUES (?, ?)", [(1, "a"), (2, "b"), (3, "c")])

        assert orchestrator.erase_target("DEPARTMENTS") == 3
        assert target_rows(target_db, "DEPARTMENTS") == []

    def test_list_source_tables(self, orchestrator):
        assert orchestrator.list_source_tables() == ["Departments", "Employees"]

    def test_list_source_tables_unreachable(self, unreachable_db, target_db):
        with pytest.raises(ConnectivityError):
            MigrationOrchestrator(unreachable_db, target_db).list_source_tables()
