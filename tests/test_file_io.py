import pytest

# Temporarily add the parent directory to the path to allow imports
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tabula_agents.file_io import export, ingest, kind_from_filename
from tabula_agents.table import InvalidInput, Table


SAMPLE = "region,revenue\nWest,100\nEast,250\n"


def test_ingest_csv():
    table = ingest(SAMPLE, 'csv')
    assert table.columns == ('region', 'revenue')
    assert table.records() == [
        {'region': 'West', 'revenue': '100'},
        {'region': 'East', 'revenue': '250'},
    ]


def test_ingest_skips_blank_lines_trims_and_pads():
    """
    Blank lines are dropped, cells trimmed, and short rows padded with empty strings.
    """
    text = "a, b ,c\r\n\r\n 1 ,2\n\n3,4,5\n"
    table = ingest(text)
    assert table.columns == ('a', 'b', 'c')
    assert table.rows == (('1', '2', ''), ('3', '4', '5'))


def test_ingest_bytes_with_bom():
    table = ingest(b'\xef\xbb\xbfname\nAlice\n', 'csv')
    assert table.columns == ('name',)


def test_quoted_commas_are_split():
    """
    CSV parsing does no quote handling.
    """
    table = ingest('a,b\n"x,y",z\n')
    assert table.rows == (('"x', 'y"'),)


@pytest.mark.parametrize("raw", ['', '\n\n', None])
def test_ingest_empty_input_rejected(raw):
    with pytest.raises(InvalidInput):
        ingest(raw)


def test_ingest_header_only_rejected():
    with pytest.raises(InvalidInput):
        ingest("a,b\n")


def test_unsupported_kind_rejected():
    with pytest.raises(InvalidInput):
        ingest(SAMPLE, 'pdf')


@pytest.mark.parametrize("filename, kind", [
    ("sales.csv", "csv"),
    ("Sales.XLSX", "workbook"),
])
def test_kind_from_filename(filename, kind):
    assert kind_from_filename(filename) == kind


def test_csv_export_round_trip():
    assert export(ingest(SAMPLE), 'csv') == SAMPLE.strip()


def test_csv_export_formats_cells():
    table = Table(['v', 'flag', 'note'], [(3.0, True, None), (2.5, False, 'a, b')])
    assert export(table, 'csv') == 'v,flag,note\n3,TRUE,\n2.5,FALSE,"a, b"'


def test_csv_export_leaves_bare_quotes_alone():
    text = 'name,note\nBob,say "hi"'
    assert export(ingest(text), 'csv') == text


def test_csv_export_single_column_with_blank_cell():
    table = Table(['note'], [('a',), (None,)])
    assert export(table, 'csv') == 'note\na\n""'


def test_workbook_round_trip():
    """
    A table exported as a workbook and ingested again has the same cells.
    """
    table = ingest(SAMPLE)
    raw = export(table, 'workbook')
    assert isinstance(raw, bytes)
    assert ingest(raw, 'xlsx') == table


def test_unreadable_workbook_rejected():
    with pytest.raises(InvalidInput):
        ingest(b'not a workbook', 'workbook')


def test_workbook_text_rejected():
    with pytest.raises(InvalidInput):
        ingest('region\nWest', 'workbook')
