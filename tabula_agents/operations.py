"""
Table operations - the deterministic engine behind every analysis prompt.

Each operation takes a Table and returns an OperationResult holding a new
Table and a one-line summary. Input tables are never modified.
"""

import logging
import re
from typing import Dict, List, Optional

from . import config
from .column_classifier import ColumnRole, classify_columns, categorical_columns, numeric_columns
from .field_resolver import (
    GROUPING_KEYWORDS,
    NUMERIC_KEYWORDS,
    find_columns_like,
    find_keyword_field,
    match_field,
    resolve_field,
)
from .intent import Intent, OperationKind, classify_intent
from .table import OperationResult, Table
from .utils import format_fixed, is_missing, parse_number, tidy_number, to_number_or_zero

logger = logging.getLogger(__name__)


def _group_indices(table: Table, field: str) -> Dict[str, List[int]]:
    """Row indices per distinct value of `field`, keys in first-occurrence order."""
    groups: Dict[str, List[int]] = {}
    for i, value in enumerate(table.column_values(field)):
        key = config.MISSING_GROUP_KEY if is_missing(value) else str(value)
        groups.setdefault(key, []).append(i)
    return groups


def _numeric_values(table: Table, column: str, indices: List[int]) -> List[float]:
    values = []
    for i in indices:
        parsed = parse_number(table.rows[i][table.column_index(column)])
        if parsed is not None:
            values.append(parsed)
    return values


def _stat_name(name: str, field: str) -> str:
    """Aggregate column name, prefixed with 'group_' when it would shadow the group field."""
    return f"group_{name}" if name == field else name


def group_aggregate(table: Table, field: str,
                    roles: Optional[Dict[str, ColumnRole]] = None) -> OperationResult:
    """
    Group rows by `field` and aggregate every numeric column per group.

    Each output row has the group key, count, percentage of all rows, and
    avg_/sum_/max_/min_ for each numeric column that has values in the group.
    An aggregate whose name equals `field` is written as group_<name>.
    """
    numeric = numeric_columns(table, roles)
    groups = _group_indices(table, field)
    total = len(table)
    count_key, percentage_key = _stat_name('count', field), _stat_name('percentage', field)

    records = []
    for key, indices in groups.items():
        record = {
            field: key,
            count_key: len(indices),
            percentage_key: f"{len(indices) / total * 100:.1f}%" if total else '0.0%',
        }
        for column in numeric:
            values = _numeric_values(table, column, indices)
            if values:
                record[_stat_name(f'avg_{column}', field)] = format_fixed(sum(values) / len(values))
                record[_stat_name(f'sum_{column}', field)] = format_fixed(sum(values))
                record[_stat_name(f'max_{column}', field)] = tidy_number(max(values))
                record[_stat_name(f'min_{column}', field)] = tidy_number(min(values))
        records.append(record)

    columns = [field, count_key, percentage_key]
    for column in numeric:
        columns += [_stat_name(f'{stat}_{column}', field) for stat in ('avg', 'sum', 'max', 'min')]
    if records:
        present = {k for r in records for k in r}
        columns = [c for c in columns if c in present]

    return OperationResult(
        Table.from_records(records, columns=columns),
        f"Grouped {total} records by {field} into {len(groups)} categories.",
    )


def sort_top_n(table: Table, field: str, is_top: bool = True,
               limit: Optional[int] = None) -> OperationResult:
    """
    Rank rows by the numeric value of `field` and keep the first `limit`.

    Non-numeric values count as 0. The sort is stable, so equal values keep
    their original relative order.
    """
    if limit is None:
        limit = config.DEFAULT_TOP_LIMIT
    keys = [to_number_or_zero(v) for v in table.column_values(field)]
    order = sorted(range(len(table)), key=lambda i: -keys[i] if is_top else keys[i])
    result = table.take(order[:limit])
    return OperationResult(
        result,
        f"Showing {'top' if is_top else 'bottom'} {limit} records sorted by {field}.",
    )


def sort_table(table: Table, field: str, descending: bool = False,
               roles: Optional[Dict[str, ColumnRole]] = None) -> OperationResult:
    """
    Reorder the whole table by `field`.

    Numeric columns compare by value (non-numeric as 0); other columns compare
    as case-insensitive text. Stable in both directions.
    """
    if roles is None:
        roles = classify_columns(table)
    values = table.column_values(field)
    if roles.get(field) == ColumnRole.NUMERIC:
        keys = [to_number_or_zero(v) for v in values]
    else:
        keys = ['' if v is None else str(v).lower() for v in values]
    order = sorted(range(len(table)), key=lambda i: keys[i], reverse=descending)
    return OperationResult(
        table.take(order),
        f"Data sorted by {field} in {'descending' if descending else 'ascending'} order.",
    )


def _median(sorted_values: List[float]) -> float:
    # Lower-middle for even counts, no interpolation: [1, 2, 3, 4] -> 3
    return sorted_values[len(sorted_values) // 2]


def compute_statistics(table: Table, roles: Optional[Dict[str, ColumnRole]] = None) -> OperationResult:
    """
    Descriptive statistics for every numeric column, as a single summary row
    keyed by <column>_<metric> (count, sum, mean, median, min, max).
    """
    numeric = numeric_columns(table, roles)
    record = {'metric': 'Statistics'}
    all_rows = list(range(len(table)))
    for column in numeric:
        values = sorted(_numeric_values(table, column, all_rows))
        if not values:
            continue
        total = sum(values)
        record[f'{column}_count'] = len(values)
        record[f'{column}_sum'] = format_fixed(total)
        record[f'{column}_mean'] = format_fixed(total / len(values))
        record[f'{column}_median'] = tidy_number(_median(values))
        record[f'{column}_min'] = tidy_number(values[0])
        record[f'{column}_max'] = tidy_number(values[-1])

    return OperationResult(
        Table.from_records([record]),
        f"Statistical analysis of {len(numeric)} numeric fields across {len(table)} records.",
    )


def filter_tokens(prompt: str) -> List[str]:
    """Lower-cased prompt words long enough to be used as search terms."""
    words = re.split(r'\s+', (prompt or '').lower())
    return [w for w in words if len(w) >= config.FILTER_MIN_TOKEN_LENGTH]


def keyword_filter(table: Table, prompt: str, max_rows: Optional[int] = None) -> OperationResult:
    """
    Keep rows where any cell contains any prompt word longer than 3 characters
    (case-insensitive substring match), capped at `max_rows`.
    """
    if max_rows is None:
        max_rows = config.FILTER_MAX_ROWS
    tokens = filter_tokens(prompt)
    keep = []
    for i, row in enumerate(table.rows):
        cells = ['' if v is None else str(v).lower() for v in row]
        if any(token in cell for cell in cells for token in tokens):
            keep.append(i)
            if len(keep) >= max_rows:
                break
    return OperationResult(
        table.take(keep),
        f"Filtered data based on criteria, showing {len(keep)} of {len(table)} records.",
    )


def compare_groups(table: Table, roles: Optional[Dict[str, ColumnRole]] = None) -> OperationResult:
    """
    Compare categories: group by the first categorical column and report the
    count and per-numeric-column averages of each group.
    """
    if roles is None:
        roles = classify_columns(table)
    numeric = numeric_columns(table, roles)
    categorical = categorical_columns(table, roles)
    field = categorical[0] if categorical else table.columns[0]

    records = []
    for key, indices in _group_indices(table, field).items():
        record = {field: key, _stat_name('count', field): len(indices)}
        for column in numeric:
            values = _numeric_values(table, column, indices)
            if values:
                record[_stat_name(f'avg_{column}', field)] = format_fixed(sum(values) / len(values))
        records.append(record)

    columns = [field, _stat_name('count', field)] + [_stat_name(f'avg_{c}', field) for c in numeric]
    if records:
        present = {k for r in records for k in r}
        columns = [c for c in columns if c in present]

    return OperationResult(
        Table.from_records(records, columns=columns),
        f"Comparative analysis of {len(records)} {field} groups showing key differences and patterns.",
    )


def sample_rows(table: Table, limit: Optional[int] = None) -> OperationResult:
    """First `limit` rows verbatim (default 20)."""
    if limit is None:
        limit = config.DEFAULT_PREVIEW_ROWS
    shown = min(limit, len(table))
    return OperationResult(
        table.head(limit),
        f"Showing sample of {shown} records from {len(table)} total records.",
    )


def find_grouping_field(prompt: str, table: Table) -> str:
    """
    Pick the column to group by: one named in the prompt, 'by <word>', a
    grouping keyword, a column whose name looks categorical, else the first.
    """
    columns = table.columns
    field = match_field(prompt, columns, hint_keywords=GROUPING_KEYWORDS)
    if field:
        return field
    categorical_like = find_columns_like(columns, GROUPING_KEYWORDS)
    if categorical_like:
        return categorical_like[0]
    return resolve_field(prompt, columns)


def find_sort_field(prompt: str, table: Table, roles: Dict[str, ColumnRole]) -> str:
    """
    Pick the column to sort by, preferring numeric columns that carry a
    domain keyword ("price", "revenue", "score", ...).
    """
    columns = table.columns
    field = match_field(prompt, columns) or find_keyword_field(prompt, columns, NUMERIC_KEYWORDS)
    if field:
        return field
    numeric = numeric_columns(table, roles)
    keyworded = find_columns_like(numeric, NUMERIC_KEYWORDS)
    if keyworded:
        return keyworded[0]
    if numeric:
        return numeric[0]
    return resolve_field(prompt, columns)


def run_operation(table: Table, prompt: str, intent: Optional[Intent] = None) -> OperationResult:
    """
    Classify a prompt (unless an intent is given) and run the matching operation.

    Args:
        table: Non-empty input table
        prompt: Natural language prompt
        intent: Optional pre-classified intent

    Returns:
        OperationResult
    """
    if intent is None:
        intent = classify_intent(prompt)
    roles = classify_columns(table)
    logger.debug("Running %s on %d rows", intent.kind.value, len(table))

    if intent.kind == OperationKind.GROUP_AGGREGATE:
        return group_aggregate(table, find_grouping_field(prompt, table), roles)

    if intent.kind == OperationKind.SORT_OR_TOP_N:
        field = find_sort_field(prompt, table, roles)
        if intent.is_full_sort:
            return sort_table(table, field, intent.descending, roles)
        return sort_top_n(table, field, intent.is_top, intent.limit)

    if intent.kind == OperationKind.STATISTICS:
        return compute_statistics(table, roles)

    if intent.kind == OperationKind.FILTER:
        return keyword_filter(table, prompt)

    if intent.kind == OperationKind.COMPARE:
        return compare_groups(table, roles)

    return sample_rows(table)
