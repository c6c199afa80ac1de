"""
Row mapping from flat source records to staging records.
"""

from typing import Any, Dict, List, Mapping, Tuple

from ..database.utils import staging_column_name
from ..setup.config.models import ColumnSpec
from .exceptions import ConfigurationError


class ColumnMapper:
    """
    Maps a source record onto the ``<table>_<column>`` staging columns.

    Lookups are built once from the table configuration:

    - a source key feeds the first column that claims it, tables searched in
      declaration order and columns in order within a table;
    - a reference column takes the value of the referenced source key, read
      from the original record.

    Every configured column gets a slot; unmatched columns stage as NULL.
    """

    def __init__(self, tables: Mapping[str, List[ColumnSpec]]):
        self.columns: List[str] = []
        self._direct: Dict[str, int] = {}
        self._references: List[Tuple[int, str]] = []

        source_keys = {c.source_key for columns in tables.values() for c in columns}

        for table, columns in tables.items():
            for column in columns:
                position = len(self.columns)
                self.columns.append(staging_column_name(table, column.destination_column))
                self._direct.setdefault(column.source_key, position)

                if column.references_column:
                    if column.references_column not in source_keys:
                        raise ConfigurationError(
                            f"Column {table}.{column.destination_column} references unknown "
                            f"column {column.references_column!r}"
                        )
                    self._references.append((position, column.references_column))

        self._width = len(self.columns)

    def map_row(self, record: Mapping[str, Any]) -> List[Any]:
        """Values in staging-column order."""
        row = [None] * self._width
        direct = self._direct
        for key, value in record.items():
            position = direct.get(key)
            if position is not None:
                row[position] = value
        for position, source_key in self._references:
            row[position] = record.get(source_key)
        return row

    def map(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Staging record keyed by ``<table>_<column>``."""
        return dict(zip(self.columns, self.map_row(record)))

