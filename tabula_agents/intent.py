"""
Intent classification - maps a natural language prompt to an operation kind.

Rules are checked in a fixed order and the first match wins, so a prompt that
says both "summarize" and "top" groups rather than ranks.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import config


class OperationKind(str, Enum):
    GROUP_AGGREGATE = 'group_aggregate'
    SORT_OR_TOP_N = 'sort_or_top_n'
    STATISTICS = 'statistics'
    FILTER = 'filter'
    COMPARE = 'compare'
    DEFAULT = 'default'


@dataclass(frozen=True)
class Intent:
    """
    Classified prompt intent.

    For SORT_OR_TOP_N: `limit` is the row cap (None for a full reorder),
    `is_top` picks descending order for ranked prompts, and `descending`
    carries the direction for bare sort/order prompts.
    """

    kind: OperationKind
    limit: Optional[int] = None
    is_top: bool = True
    descending: bool = False

    @property
    def is_full_sort(self) -> bool:
        return self.kind == OperationKind.SORT_OR_TOP_N and self.limit is None


GROUP_RE = re.compile(r'(summarize|group|aggregate|count)')
TOP_N_RE = re.compile(r'(top|bottom|highest|lowest|best|worst)\s*(\d+)?')
SORT_RE = re.compile(r'(sort|order)')
DESCENDING_RE = re.compile(r'desc|high to low')
STATISTICS_RE = re.compile(r'(average|mean|median|sum|total|statistics)')
FILTER_RE = re.compile(r'(filter|where|find|search|contains)')
COMPARE_RE = re.compile(r'(compare|vs|versus|difference)')

TOP_WORDS = {'top', 'highest', 'best'}


def classify_intent(prompt: str) -> Intent:
    """
    Classify a prompt.

    Precedence: group/aggregate > top-N or sort > statistics > filter >
    compare > default sample.

    Args:
        prompt: Natural language prompt (any case)

    Returns:
        Intent
    """
    text = (prompt or '').lower()

    if GROUP_RE.search(text):
        return Intent(OperationKind.GROUP_AGGREGATE)

    top = TOP_N_RE.search(text)
    if top:
        limit = int(top.group(2)) if top.group(2) else config.DEFAULT_TOP_LIMIT
        return Intent(OperationKind.SORT_OR_TOP_N, limit=limit or config.DEFAULT_TOP_LIMIT,
                      is_top=top.group(1) in TOP_WORDS)

    if SORT_RE.search(text):
        descending = DESCENDING_RE.search(text) is not None
        return Intent(OperationKind.SORT_OR_TOP_N, limit=None, is_top=descending, descending=descending)

    if STATISTICS_RE.search(text):
        return Intent(OperationKind.STATISTICS)

    if FILTER_RE.search(text):
        return Intent(OperationKind.FILTER)

    if COMPARE_RE.search(text):
        return Intent(OperationKind.COMPARE)

    return Intent(OperationKind.DEFAULT)
