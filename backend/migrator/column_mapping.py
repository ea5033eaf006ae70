"""Column renaming and value normalization for one batch."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from migrator.models import DEFAULT_REPLACEMENT

logger = logging.getLogger(__name__)

# Letters, digits and underscore only
VALID_IDENTIFIER = re.compile(r"\w+")


class ColumnPlan:
    """Ordered (source index, target column) pairs computed once per batch."""

    def __init__(self, pairs: List[Tuple[int, str]], source_names: Sequence[str]):
        self.pairs = pairs
        self.source_names = list(source_names)

    @property
    def target_columns(self) -> List[str]:
        return [target for _, target in self.pairs]

    @property
    def is_empty(self) -> bool:
        return not self.pairs

    def bind(self, row: Sequence[Any], transformer: Optional["ValueTransformer"] = None) -> Tuple[Any, ...]:
        """Positional parameter values for one row, transformed on the way out."""
        if transformer is None:
            return tuple(row[index] for index, _ in self.pairs)
        return tuple(
            transformer.transform(self.source_names[index], row[index])
            for index, _ in self.pairs
        )

    def __len__(self) -> int:
        return len(self.pairs)


class ColumnMapper:
    """Validate source column identifiers and rename them for the target.

    Columns whose names are blank or contain anything but letters, digits
    and underscore are left out of the insert. Surviving names are looked up
    case-insensitively in the column map; unmapped names pass through.
    """

    def __init__(self, column_map: Optional[Dict[str, str]] = None):
        self.column_map = {
            key.lower(): value for key, value in (column_map or {}).items()
        }

    @staticmethod
    def is_valid_identifier(name: Optional[str]) -> bool:
        return bool(name) and VALID_IDENTIFIER.fullmatch(name) is not None

    def plan(self, column_names: Sequence[str], table_name: Optional[str] = None) -> ColumnPlan:
        """Build the column plan for a batch with the given source columns."""
        pairs = []
        for index, name in enumerate(column_names):
            if not self.is_valid_identifier(name):
                logger.warning(
                    f"Skipping column {name!r}"
                    f"{f' of {table_name}' if table_name else ''}: "
                    f"name must contain only letters, digits and underscore"
                )
                continue
            pairs.append((index, self.column_map.get(name.lower(), name)))

        if pairs and self.column_map:
            renamed = [
                f"{column_names[index]}->{target}"
                for index, target in pairs
                if target != column_names[index]
            ]
            logger.debug(f"Column mapping for {table_name or 'batch'}: {', '.join(renamed) or 'identity'}")
        return ColumnPlan(pairs, column_names)


class ValueTransformer:
    """Substitute blank text values in designated source columns."""

    def __init__(
        self,
        empty_columns: Optional[Iterable[str]] = None,
        replacement: Optional[str] = None
    ):
        self.empty_columns = {name.lower() for name in (empty_columns or []) if name}
        self.replacement = DEFAULT_REPLACEMENT if replacement is None else replacement

    def applies_to(self, column_name: str) -> bool:
        return column_name.lower() in self.empty_columns

    def transform(self, column_name: str, value: Any) -> Any:
        """Return the value to bind for a source column.

        Only strings that are empty after trimming are replaced; None is
        never substituted.
        """
        if (
            isinstance(value, str)
            and not value.strip()
            and self.applies_to(column_name)
        ):
            return self.replacement
        return value
