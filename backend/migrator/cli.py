"""CLI tool for SQL Server to Oracle table migration."""

from __future__ import annotations

import json
import logging
import sys
from typing import List, Optional

import click

from migrator.connectors import OracleConnector, SQLServerConnector
from migrator.exceptions import EraseError, MappingValidationError, MigrationException
from migrator.mapping_reader import create_sample_mapping_file, read_mappings
from migrator.models import ErasePolicy, TableMapping
from migrator.orchestrator import MigrationOrchestrator
from migrator.settings import MigrationSettings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def build_orchestrator(
    settings: MigrationSettings,
    erase_policy: ErasePolicy = ErasePolicy.WARN_AND_CONTINUE
) -> MigrationOrchestrator:
    """Wire connectors and orchestrator from settings."""
    return MigrationOrchestrator(
        source=SQLServerConnector(settings.sqlserver),
        target=OracleConnector(settings.oracle),
        batch_size=settings.batch_size,
        erase_policy=erase_policy,
    )


def _split_option(value: Optional[str]) -> List[str]:
    return [part.strip() for part in value.split(",")] if value else []


@click.group()
@click.option('--env-file', type=click.Path(dir_okay=False), help='Path to a .env file')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, env_file, verbose):
    """SQL Server to Oracle table migration CLI."""
    try:
        settings = MigrationSettings.from_env(env_file=env_file)
    except ValueError as e:
        click.echo(f"✗ Invalid configuration: {e}", err=True)
        sys.exit(1)
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@cli.command('list-tables')
@click.pass_obj
def list_tables(settings):
    """List the base tables of the source database."""
    try:
        tables = build_orchestrator(settings).list_source_tables()
    except (MigrationException, ValueError, ImportError) as e:
        click.echo(f"✗ Could not retrieve tables: {e}", err=True)
        click.echo("  Verify the SQL Server connection settings.", err=True)
        sys.exit(1)

    if not tables:
        click.echo("No tables found in the source database.")
        return

    click.echo(f"\nFound {len(tables)} tables:\n")
    for table in tables:
        click.echo(f"  {table}")


@cli.command()
@click.argument('source_table')
@click.argument('target_table')
@click.option('--where', 'where', help='Filter predicate for the source rows')
@click.option('--source-columns', help='Comma-separated source column names to rename')
@click.option('--target-columns', help='Comma-separated target column names (paired by position)')
@click.option('--empty-columns', help='Comma-separated source columns whose blank values are replaced')
@click.option('--replacement', default='-', show_default=True, help='Replacement for blank values')
@click.option('--order-by', help='Stable sort key for paging the source')
@click.option('--clear', is_flag=True, help='Delete all target rows before loading')
@click.option('--strict-erase', is_flag=True, help='Stop when clearing the target fails')
@click.pass_obj
def migrate(settings, source_table, target_table, where, source_columns, target_columns,
            empty_columns, replacement, order_by, clear, strict_erase):
    """Migrate a single table."""
    erase_policy = ErasePolicy.FAIL_TABLE if strict_erase else ErasePolicy.WARN_AND_CONTINUE
    source_list = _split_option(source_columns)
    target_list = _split_option(target_columns)
    try:
        column_map = TableMapping.build_column_map(source_list, target_list)
    except MappingValidationError as e:
        click.echo(f"⚠ {e}. Using identity column mapping.", err=True)
        column_map = {}

    try:
        orchestrator = build_orchestrator(settings, erase_policy)
        if clear:
            try:
                deleted = orchestrator.erase_target(target_table)
                click.echo(f"Cleared {deleted} rows from {target_table}")
            except EraseError as e:
                if orchestrator.erase_policy == ErasePolicy.FAIL_TABLE:
                    raise
                click.echo(f"⚠ {e}. Loading anyway.", err=True)
        outcome = orchestrator.migrate_table(
            source_table,
            target_table,
            where=where,
            column_map=column_map,
            empty_columns=_split_option(empty_columns),
            replacement=replacement,
            order_by=order_by,
        )
    except (MigrationException, ValueError, ImportError) as e:
        click.echo(f"✗ Migration of {source_table} failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {source_table} -> {target_table}: {outcome.rows_migrated} rows migrated")


@cli.command('migrate-mappings')
@click.argument('mapping_file', required=False, type=click.Path(dir_okay=False))
@click.option('--clear-first', is_flag=True, help='Clear every target table before loading')
@click.option('--strict-erase', is_flag=True, help='Fail a table when clearing its target fails')
@click.option('--json', 'as_json', is_flag=True, help='Print the run report as JSON')
@click.pass_obj
def migrate_mappings(settings, mapping_file, clear_first, strict_erase, as_json):
    """Migrate every active table listed in a mapping workbook."""
    mapping_file = mapping_file or settings.mapping_file
    erase_policy = ErasePolicy.FAIL_TABLE if strict_erase else ErasePolicy.WARN_AND_CONTINUE

    try:
        mappings = read_mappings(mapping_file)
        report = build_orchestrator(settings, erase_policy).migrate_from_mappings(
            mappings, clear_first=clear_first
        )
    except (FileNotFoundError, MigrationException, ValueError, ImportError) as e:
        click.echo(f"✗ Migration run failed: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"\nSucceeded: {report.succeeded} tables")
        click.echo(f"Failed: {report.failed} tables")
        for outcome in report.failures:
            click.echo(f"  ✗ {outcome.source_table}: {outcome.error}")

    if report.failed:
        sys.exit(1)


@cli.command()
@click.argument('table')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
def erase(settings, table, yes):
    """Delete all rows of a target table."""
    if not yes:
        click.confirm(f"Delete all rows from {table}?", abort=True)

    try:
        deleted = build_orchestrator(settings).erase_target(table)
    except (MigrationException, ValueError, ImportError) as e:
        click.echo(f"✗ Could not clear {table}: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Deleted {deleted} rows from {table}")


@cli.command('create-sample-mapping')
@click.argument('path', type=click.Path(dir_okay=False))
def create_sample_mapping(path):
    """Write an example mapping workbook."""
    written = create_sample_mapping_file(path)
    click.echo(f"✓ Sample mapping file created: {written}")


def main():
    cli()


if __name__ == '__main__':
    main()
