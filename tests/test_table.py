import pytest

# Temporarily add the parent directory to the path to allow imports
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tabula_agents.table import InvalidInput, OperationResult, Table, ensure_table


def test_from_records_uses_first_row_schema_and_appends_late_keys():
    """
    The first record's keys define the schema; keys first seen later are appended
    and cells a record lacks are None.
    """
    table = Table.from_records([
        {'region': 'West', 'amount': '10'},
        {'amount': '20', 'region': 'East', 'note': 'late'},
    ])

    assert table.columns == ('region', 'amount', 'note')
    assert table.records() == [
        {'region': 'West', 'amount': '10', 'note': None},
        {'region': 'East', 'amount': '20', 'note': 'late'},
    ]


def test_value_and_column_access():
    table = Table(['a', 'b'], [('1', 'x'), ('2', 'y')])
    assert len(table) == 2
    assert table.value(1, 'b') == 'y'
    assert table.column_values('a') == ['1', '2']
    assert table.column_index('b') == 1
    assert table.row_dict(0) == {'a': '1', 'b': 'x'}


def test_rows_are_padded_and_truncated_to_schema_width():
    table = Table(['a', 'b'], [('1',), ('2', 'y', 'extra')])
    assert table.rows == (('1', None), ('2', 'y'))


def test_duplicate_columns_rejected():
    with pytest.raises(InvalidInput):
        Table(['a', 'a'], [])


def test_with_column_appends_without_touching_original():
    """
    Adding a column returns a new table; the input keeps its schema and rows.
    """
    table = Table(['a'], [('1',), ('2',)])
    added = table.with_column('b', [10, 20])

    assert added.columns == ('a', 'b')
    assert added.column_values('b') == [10, 20]
    assert table.columns == ('a',)
    assert table.rows == (('1',), ('2',))


def test_with_column_overwrites_existing_column_in_place():
    table = Table(['a', 'b'], [('1', 'x'), ('2', 'y')])
    updated = table.with_column('a', ['one', 'two'])
    assert updated.columns == ('a', 'b')
    assert updated.records() == [{'a': 'one', 'b': 'x'}, {'a': 'two', 'b': 'y'}]


def test_with_column_requires_one_value_per_row():
    table = Table(['a'], [('1',), ('2',)])
    with pytest.raises(ValueError):
        table.with_column('b', [1])


def test_take_and_head_build_new_tables():
    table = Table(['a'], [('1',), ('2',), ('3',)])
    assert table.take([2, 0]).column_values('a') == ['3', '1']
    assert table.head(2).column_values('a') == ['1', '2']
    assert table.head(10) == table


@pytest.mark.parametrize("data", [None, [], "not a table", [1, 2]])
def test_ensure_table_rejects_missing_data(data):
    """
    Missing, empty or malformed data is an InvalidInput with an actionable hint.
    """
    with pytest.raises(InvalidInput) as exc_info:
        ensure_table(data)
    assert exc_info.value.hint


def test_ensure_table_accepts_records():
    table = ensure_table([{'a': '1'}])
    assert isinstance(table, Table)
    assert table.columns == ('a',)


def test_operation_result_requires_summary():
    with pytest.raises(ValueError):
        OperationResult(Table(['a'], []), '')


def test_operation_result_to_dict():
    result = OperationResult(Table(['a'], [('1',)]), 'One row.')
    assert result.to_dict() == {'data': [{'a': '1'}], 'summary': 'One row.'}
