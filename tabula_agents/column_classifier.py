"""
ColumnClassifier - infers whether each column is numeric or categorical.
"""

from enum import Enum
from typing import Dict, List, Optional

from . import config
from .table import Table
from .utils import is_missing, parse_number


class ColumnRole(str, Enum):
    NUMERIC = 'numeric'
    CATEGORICAL = 'categorical'


def classify_columns(table: Table, sample_size: Optional[int] = None,
                     threshold: Optional[float] = None) -> Dict[str, ColumnRole]:
    """
    Classify every column of a table by sampling a prefix of its rows.

    A column is numeric when more than `threshold` of its sampled, non-missing
    values parse fully as decimal numbers. Columns whose sample is entirely
    missing are categorical.

    Args:
        table: Table to classify
        sample_size: Rows to sample (default config.CLASSIFIER_SAMPLE_ROWS)
        threshold: Numeric fraction that must be exceeded (default config.NUMERIC_THRESHOLD)

    Returns:
        {column_name: ColumnRole} in schema order; {} for an empty table.
    """
    if table.is_empty():
        return {}
    if sample_size is None:
        sample_size = config.CLASSIFIER_SAMPLE_ROWS
    if threshold is None:
        threshold = config.NUMERIC_THRESHOLD

    sample = table.head(sample_size)
    roles: Dict[str, ColumnRole] = {}
    for column in table.columns:
        present = [v for v in sample.column_values(column) if not is_missing(v)]
        numeric = sum(1 for v in present if parse_number(v) is not None)
        if present and numeric / len(present) > threshold:
            roles[column] = ColumnRole.NUMERIC
        else:
            roles[column] = ColumnRole.CATEGORICAL
    return roles


def numeric_columns(table: Table, roles: Optional[Dict[str, ColumnRole]] = None) -> List[str]:
    if roles is None:
        roles = classify_columns(table)
    return [c for c in table.columns if roles.get(c) == ColumnRole.NUMERIC]


def categorical_columns(table: Table, roles: Optional[Dict[str, ColumnRole]] = None) -> List[str]:
    if roles is None:
        roles = classify_columns(table)
    return [c for c in table.columns if roles.get(c) == ColumnRole.CATEGORICAL]
