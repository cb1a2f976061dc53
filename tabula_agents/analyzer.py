"""
DataAnalyzer - the "analyze" operation: prompt in, table and summary out.

The local engine always produces the result table. When a remote insight is
available it is appended to the summary as supplementary text.
"""

import logging
from typing import Any, Callable, List, Optional

from . import config
from .column_classifier import classify_columns, numeric_columns
from .insight_bot import try_remote_insight
from .intent import classify_intent
from .operations import run_operation
from .table import InvalidInput, OperationResult, Table, ensure_table
from .utils import is_missing

logger = logging.getLogger(__name__)

InsightFn = Callable[[str, Table], Optional[str]]


def generate_insights(table: Table) -> str:
    """
    Short observations about the input table: size, numeric field count and
    the column with the most distinct values.
    """
    insights: List[str] = []
    if len(table) > config.LARGE_DATASET_ROWS:
        insights.append(f"Large dataset with {len(table)} records.")

    numeric = numeric_columns(table, classify_columns(table))
    if numeric:
        insights.append(f"Found {len(numeric)} numeric fields for analysis.")

    if table.columns:
        distinct = [len({None if is_missing(v) else v for v in table.column_values(c)}) for c in table.columns]
        most_diverse = table.columns[distinct.index(max(distinct))]
        insights.append(f"Most diverse field: {most_diverse}.")

    return " ".join(insights)


class DataAnalyzer:
    """
    Runs natural language analysis prompts against tabular data.

    Usage:
        analyzer = DataAnalyzer()
        result = analyzer.analyze(rows, "summarize sales by region")
        result.to_dict()   # {"data": [...], "summary": "Smart Analysis: Grouped ..."}

        # Local only, or with a custom insight source
        analyzer = DataAnalyzer(insight_fn=None)
    """

    _DEFAULT = object()

    def __init__(self, insight_fn: Any = _DEFAULT):
        """
        Args:
            insight_fn: Callable (prompt, sample_table) -> Optional[str].
                Defaults to the Claude-backed try_remote_insight; pass None to
                disable remote enrichment entirely.
        """
        self.insight_fn: Optional[InsightFn] = try_remote_insight if insight_fn is self._DEFAULT else insight_fn

    def analyze(self, data: Any, prompt: str) -> OperationResult:
        """
        Analyze data according to a natural language prompt.

        Args:
            data: Table or list of row dicts
            prompt: What the user wants ("top 5 by revenue", "compare regions", ...)

        Returns:
            OperationResult with the computed table and summary

        Raises:
            InvalidInput: if data or prompt is missing/empty
        """
        table = ensure_table(data)
        if not prompt or not str(prompt).strip():
            raise InvalidInput("Prompt is required", hint="Describe what you want to do with the data.")

        intent = classify_intent(prompt)
        logger.info("Analyzing %d rows, intent=%s", len(table), intent.kind.value)
        result = run_operation(table, prompt, intent)

        summary = f"Smart Analysis: {result.summary}"
        insights = generate_insights(table)
        if insights:
            summary = f"{summary} {insights}"

        remote = self._remote_insight(prompt, table)
        if remote:
            summary = f"{summary} AI Insight: {remote}"

        return OperationResult(result.data, summary)

    def _remote_insight(self, prompt: str, table: Table) -> Optional[str]:
        if self.insight_fn is None:
            return None
        try:
            return self.insight_fn(prompt, table.head(config.REMOTE_SAMPLE_ROWS))
        except Exception as e:
            logger.info("Remote insight failed, continuing with local result: %s", e)
            return None
