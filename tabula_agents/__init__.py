from .base import LLMBaseAgent, RemoteUnavailable, clean_json_string
from .table import Table, OperationResult, InvalidInput
from .column_classifier import ColumnRole, classify_columns
from .field_resolver import NoColumnsAvailable, resolve_field
from .intent import Intent, OperationKind, classify_intent
from .operations import (
    group_aggregate,
    sort_top_n,
    sort_table,
    compute_statistics,
    keyword_filter,
    compare_groups,
    sample_rows,
    run_operation,
)
from .formula_engine import FormulaError, apply_formula, parse_formula, validate_formula
from .insight_bot import InsightBot, try_remote_insight
from .formula_bot import FormulaBot, FormulaGenerator, local_formula
from .analyzer import DataAnalyzer
from .file_io import ingest, export

__all__ = [
    "LLMBaseAgent",
    "RemoteUnavailable",
    "clean_json_string",
    "Table",
    "OperationResult",
    "InvalidInput",
    "ColumnRole",
    "classify_columns",
    "NoColumnsAvailable",
    "resolve_field",
    "Intent",
    "OperationKind",
    "classify_intent",
    "group_aggregate",
    "sort_top_n",
    "sort_table",
    "compute_statistics",
    "keyword_filter",
    "compare_groups",
    "sample_rows",
    "run_operation",
    "FormulaError",
    "apply_formula",
    "parse_formula",
    "validate_formula",
    "InsightBot",
    "try_remote_insight",
    "FormulaBot",
    "FormulaGenerator",
    "local_formula",
    "DataAnalyzer",
    "ingest",
    "export",
]
