"""
Table - an ordered, explicit-schema table of rows.

The schema (ordered column names plus a name -> position lookup) is built once
and travels with the rows, which are stored as fixed-width tuples. Tables are
never mutated after construction; every operation builds a new one.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence


class InvalidInput(ValueError):
    """Structurally invalid input at a public boundary (no rows, no prompt, empty formula)."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class Table:
    """
    Immutable table with an explicit schema.

    Usage:
        table = Table.from_records([{"region": "West", "amount": "1200"}])
        table.columns          # ('region', 'amount')
        table.value(0, 'amount')  # '1200'
        table.records()        # [{'region': 'West', 'amount': '1200'}]
    """

    __slots__ = ('_columns', '_rows', '_index')

    def __init__(self, columns: Sequence[str], rows: Iterable[Sequence[Any]] = ()):
        columns = tuple(str(c) for c in columns)
        if len(set(columns)) != len(columns):
            raise InvalidInput(f"Duplicate column names in schema: {list(columns)}")
        width = len(columns)
        normalized = []
        for row in rows:
            row = tuple(row)
            if len(row) < width:
                row = row + (None,) * (width - len(row))
            elif len(row) > width:
                row = row[:width]
            normalized.append(row)
        self._columns = columns
        self._rows = tuple(normalized)
        self._index = {name: i for i, name in enumerate(columns)}

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> 'Table':
        """
        Build a table from row dicts.

        The first record's keys define the schema; keys first seen in later
        records are appended. Cells a record lacks are None.

        Args:
            records: Iterable of row dicts
            columns: Optional explicit schema; extra record keys are ignored

        Returns:
            A new Table
        """
        records = list(records)
        if columns is None:
            seen: Dict[str, None] = {}
            for record in records:
                for key in record:
                    seen.setdefault(str(key), None)
            columns = list(seen)
        columns = [str(c) for c in columns]
        rows = [tuple(record.get(c) for c in columns) for record in records]
        return cls(columns, rows)

    @property
    def columns(self) -> tuple:
        return self._columns

    @property
    def rows(self) -> tuple:
        return self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        for i in range(len(self._rows)):
            yield self.row_dict(i)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self._columns == other._columns and self._rows == other._rows

    def __repr__(self) -> str:
        return f"Table(columns={list(self._columns)!r}, rows={len(self._rows)})"

    def is_empty(self) -> bool:
        return not self._rows

    def has_column(self, name: str) -> bool:
        return name in self._index

    def column_index(self, name: str) -> int:
        return self._index[name]

    def value(self, row: int, column: str) -> Any:
        return self._rows[row][self._index[column]]

    def column_values(self, column: str) -> List[Any]:
        i = self._index[column]
        return [row[i] for row in self._rows]

    def row_dict(self, row: int) -> Dict[str, Any]:
        return dict(zip(self._columns, self._rows[row]))

    def records(self) -> List[Dict[str, Any]]:
        return [dict(zip(self._columns, row)) for row in self._rows]

    def head(self, n: int) -> 'Table':
        return Table(self._columns, self._rows[:max(n, 0)])

    def take(self, indices: Iterable[int]) -> 'Table':
        """New table with the rows at `indices`, in that order."""
        return Table(self._columns, [self._rows[i] for i in indices])

    def with_column(self, name: str, values: Sequence[Any]) -> 'Table':
        """
        Return a new table with `name` set to `values` (one per row).
        An existing column is overwritten in place; a new one is appended.
        """
        if len(values) != len(self._rows):
            raise ValueError(f"Expected {len(self._rows)} values for column {name!r}, got {len(values)}")
        if name in self._index:
            i = self._index[name]
            rows = [row[:i] + (v,) + row[i + 1:] for row, v in zip(self._rows, values)]
            return Table(self._columns, rows)
        rows = [row + (v,) for row, v in zip(self._rows, values)]
        return Table(self._columns + (name,), rows)


def ensure_table(data: Any) -> Table:
    """
    Accept a Table or a list of row dicts and return a non-empty Table.

    Raises:
        InvalidInput: if there is no data, or the data has no columns
    """
    if isinstance(data, Table):
        table = data
    elif isinstance(data, list) and all(isinstance(r, dict) for r in data):
        table = Table.from_records(data)
    else:
        raise InvalidInput("Valid data array is required", hint="Upload a file or paste data first.")

    if table.is_empty():
        raise InvalidInput("No data found or invalid data format", hint="Upload a file or paste data first.")
    if not table.columns:
        raise InvalidInput("Data has no columns", hint="Make sure the first line is a header row.")
    return table


@dataclass(frozen=True)
class OperationResult:
    """Result of a table operation: a new table plus a non-empty summary."""

    data: Table
    summary: str

    def __post_init__(self):
        if not self.summary:
            raise ValueError("OperationResult.summary must be non-empty")

    def to_dict(self) -> Dict[str, Any]:
        return {'data': self.data.records(), 'summary': self.summary}
