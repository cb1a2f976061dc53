"""
File ingestion and export - CSV text and XLSX workbooks to and from Tables.

CSV parsing is deliberately naive: lines are split on commas with no quote
handling, so a quoted value containing a comma is split across cells.
"""

import csv
import io
import logging
from typing import Any, Union

import pandas as pd

from .table import InvalidInput, Table

logger = logging.getLogger(__name__)

CSV_KINDS = {'csv'}
WORKBOOK_KINDS = {'workbook', 'xlsx'}


def _normalize_kind(kind: str) -> str:
    kind = (kind or '').lower().lstrip('.')
    if kind in CSV_KINDS:
        return 'csv'
    if kind in WORKBOOK_KINDS:
        return 'workbook'
    raise InvalidInput(f"Unsupported file kind: {kind!r}", hint="Use a .csv or .xlsx file.")


def kind_from_filename(filename: str) -> str:
    """'sales.xlsx' -> 'workbook', 'sales.csv' -> 'csv'."""
    ext = filename.rsplit('.', 1)[-1] if '.' in (filename or '') else ''
    return _normalize_kind(ext)


def parse_csv(text: str) -> Table:
    """
    Parse CSV text. The first line is the header; blank lines are skipped;
    cells are trimmed and short rows padded with empty strings.
    """
    lines = text.replace('\r\n', '\n').replace('\r', '\n').split('\n')
    lines = [line for line in lines if line.strip()]
    if not lines:
        raise InvalidInput("No data found or invalid data format", hint="Upload a file or paste data first.")

    headers = [h.strip() for h in lines[0].split(',')]
    rows = []
    for line in lines[1:]:
        cells = line.split(',')
        rows.append(tuple(cells[j].strip() if j < len(cells) else '' for j in range(len(headers))))
    return Table(headers, rows)


def _cell_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, float):
        if value != value:
            return ''
        if value.is_integer():
            return str(int(value))
    if isinstance(value, list):
        return ' '.join(_cell_text(v) for v in value)
    return str(value)


def _csv_quoting(cells, width: int) -> int:
    # QUOTE_NONE leaves '"' untouched; anything the csv module must quote
    # switches to QUOTE_MINIMAL.
    if any(ch in text for text in cells for ch in (',', '\n', '\r')):
        return csv.QUOTE_MINIMAL
    if width == 1 and any(text == '' for text in cells):
        return csv.QUOTE_MINIMAL
    return csv.QUOTE_NONE


def to_csv(table: Table) -> str:
    """CSV text for a table: header line then one line per row."""
    if not table.columns:
        return ''
    headers = [str(c) for c in table.columns]
    df = pd.DataFrame([[_cell_text(v) for v in row] for row in table.rows], columns=headers, dtype=object)
    cells = headers + [text for row in df.itertuples(index=False, name=None) for text in row]
    text = df.to_csv(index=False, lineterminator='\n', quoting=_csv_quoting(cells, len(headers)))
    return text[:-1] if text.endswith('\n') else text


def read_workbook(raw: bytes) -> Table:
    """Read the first sheet of an XLSX workbook, every cell as text."""
    try:
        df = pd.read_excel(io.BytesIO(raw), sheet_name=0, dtype=str, keep_default_na=False, engine='openpyxl')
    except Exception as e:
        logger.warning("Could not read workbook: %s", e)
        raise InvalidInput(f"Could not read workbook: {e}", hint="Check that the file is a valid .xlsx workbook.")
    df = df.fillna('')
    headers = [str(c).strip() for c in df.columns]
    rows = [tuple(str(v).strip() for v in record) for record in df.itertuples(index=False, name=None)]
    rows = [row for row in rows if any(row)]
    return Table(headers, rows)


def write_workbook(table: Table, sheet_name: str = 'Sheet1') -> bytes:
    """XLSX bytes with a single sheet holding the table."""
    df = pd.DataFrame(list(table.rows), columns=list(table.columns))
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def ingest(raw: Union[bytes, str], kind: str = 'csv') -> Table:
    """
    Turn uploaded or pasted content into a Table.

    Args:
        raw: CSV text/bytes or workbook bytes
        kind: "csv" or "workbook" ("xlsx" accepted)

    Returns:
        Table with every cell as text

    Raises:
        InvalidInput: for empty or unreadable input
    """
    kind = _normalize_kind(kind)
    if raw is None or len(raw) == 0:
        raise InvalidInput("No data found or invalid data format", hint="Upload a file or paste data first.")

    if kind == 'workbook':
        if isinstance(raw, str):
            raise InvalidInput("Workbook content must be binary", hint="Upload the .xlsx file directly.")
        table = read_workbook(raw)
    else:
        text = raw.decode('utf-8-sig', errors='replace') if isinstance(raw, bytes) else raw
        table = parse_csv(text.lstrip('\ufeff'))

    if table.is_empty():
        raise InvalidInput("No data rows found below the header", hint="Add at least one data row.")
    logger.info("Ingested %d rows x %d columns (%s)", len(table), len(table.columns), kind)
    return table


def export(table: Table, kind: str = 'csv') -> Union[str, bytes]:
    """
    Serialize a Table: CSV text or XLSX workbook bytes.
    """
    kind = _normalize_kind(kind)
    if kind == 'workbook':
        return write_workbook(table)
    return to_csv(table)
