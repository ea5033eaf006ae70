"""Read table mappings from an Excel workbook.

Workbook layout (first sheet, row 1 is the header, columns by position):

    A  Source table (e.g. dbo.Employees)
    B  Target table (e.g. EMPLOYEES)
    C  Active, default TRUE
    D  Description
    E  Filter predicate (e.g. IsActive = 1)
    F  Clear target before loading, default FALSE
    G  Source column names, comma separated
    H  Target column names, comma separated (paired with G by position)
    I  Source columns whose blank values are replaced, comma separated
    J  Replacement value, default "-"
    K  Stable sort key used to page the source
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import pandas as pd

from migrator.models import DEFAULT_REPLACEMENT, TableMapping

logger = logging.getLogger(__name__)

COLUMN_COUNT = 11

HEADERS = [
    "Source Table",
    "Target Table",
    "Active",
    "Description",
    "Where Condition",
    "Clear Target",
    "Source Columns",
    "Target Columns",
    "Empty To Replacement Columns",
    "Empty Replacement",
    "Order By",
]

ACTIVE_TOKENS = {"TRUE", "YES", "Y", "1", "O", "활성"}
CLEAR_TOKENS = ACTIVE_TOKENS | {"DELETE", "TRUNCATE", "삭제"}


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _flag(value: str, tokens: set, default: bool) -> bool:
    if not value:
        return default
    return value.upper() in tokens


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",")] if value else []


def parse_mapping_row(row: Sequence[Any], row_number: int) -> Optional[TableMapping]:
    """Build a mapping from one worksheet row, or None if the row is unusable."""
    source_table = _cell(row, 0)
    if not source_table:
        logger.warning(f"Row {row_number}: source table name is empty. Skipping.")
        return None

    target_table = _cell(row, 1)
    if not target_table:
        logger.warning(f"Row {row_number}: target table name is empty. Skipping.")
        return None

    empty_columns = [name for name in _split(_cell(row, 8)) if name]
    replacement = _cell(row, 9) or DEFAULT_REPLACEMENT

    mapping = TableMapping.from_column_lists(
        source_table,
        target_table,
        source_columns=_split(_cell(row, 6)),
        target_columns=_split(_cell(row, 7)),
        active=_flag(_cell(row, 2), ACTIVE_TOKENS, True),
        description=_cell(row, 3) or None,
        where=_cell(row, 4) or None,
        clear_target=_flag(_cell(row, 5), CLEAR_TOKENS, False),
        empty_columns=empty_columns,
        replacement=replacement,
        order_by=_cell(row, 10) or None,
    )
    for warning in mapping.warnings:
        logger.warning(f"Row {row_number}: {warning}")
    return mapping


def read_mappings(file_path: Union[str, Path]) -> List[TableMapping]:
    """Read table mappings from the first sheet of a workbook.

    Args:
        file_path: Path to the .xlsx mapping file

    Returns:
        Mappings in worksheet order (inactive ones included)

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(file_path)
    if not path.exists():
        logger.error(f"Mapping file not found: {path}")
        raise FileNotFoundError(f"Mapping file not found: {path}")

    frame = pd.read_excel(
        path,
        sheet_name=0,
        header=0,
        dtype=str,
        keep_default_na=False,
        engine="openpyxl",
    )
    logger.info(f"Reading table mappings from {path}")

    mappings = []
    for position, row in enumerate(frame.itertuples(index=False, name=None)):
        row_number = position + 2
        if not any(_cell(row, index) for index in range(min(len(row), COLUMN_COUNT))):
            continue
        try:
            mapping = parse_mapping_row(row, row_number)
        except Exception as e:
            logger.warning(f"Row {row_number}: could not be read ({e}). Skipping.")
            continue
        if mapping is not None:
            logger.debug(f"Row {row_number}: {mapping}")
            mappings.append(mapping)

    logger.info(f"Read {len(mappings)} table mappings ({sum(1 for m in mappings if m.active)} active)")
    return mappings


def create_sample_mapping_file(file_path: Union[str, Path]) -> Path:
    """Write an example mapping workbook.

    Returns:
        Path of the written file
    """
    path = Path(file_path)
    rows = [
        [
            "dbo.Employees", "EMPLOYEES", "TRUE", "Employee records", "IsActive = 1", "TRUE",
            "EmployeeID,EmployeeName", "EMP_ID,EMP_NAME", "EmployeeName", "-", "EmployeeID",
        ],
        [
            "dbo.Departments", "DEPARTMENTS", "TRUE", "Department records", "", "FALSE",
            "", "", "", "", "",
        ],
        [
            "dbo.Projects", "PROJECTS", "FALSE", "Excluded from migration for now",
            "Status = 'Completed'", "FALSE", "", "", "", "", "",
        ],
    ]
    frame = pd.DataFrame(rows, columns=HEADERS)
    frame.to_excel(path, sheet_name="TableMapping", index=False, engine="openpyxl")
    logger.info(f"Sample mapping file created: {path}")
    return path
