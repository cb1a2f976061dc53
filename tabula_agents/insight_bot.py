"""
InsightBot - optional one-paragraph commentary on an analysis prompt.

Returns plain text only; the computed table always comes from the local
engine. Any failure (no key, timeout, API error, empty reply) is reported
as an absent insight so callers can fall through without special casing.
"""

import json
import logging
from typing import Optional

from . import config
from .base import LLMBaseAgent, RemoteUnavailable, call_with_deadline, remote_available, DEFAULT_MODEL
from .table import Table

logger = logging.getLogger(__name__)


class InsightBot(LLMBaseAgent):
    """
    Comments on a dataset sample in the light of the user's request.

    Usage:
        bot = InsightBot()
        text = bot.try_remote_insight("summarize sales by region", table.head(5))
        # "Electronics dominates revenue in the West ..." or None
    """

    def __init__(self, model=DEFAULT_MODEL, timeout=None):
        super().__init__(model=model, max_tokens=400, timeout=timeout)
        self.system_prompt = """You are a concise data analyst.

Rules:
- Answer in plain text only: no markdown, no bullet lists, no code blocks
- 1-3 sentences
- Only state what the sample supports; do NOT make up data values"""

    def insight(self, prompt: str, sample: Table) -> str:
        """
        Ask Claude for a short insight.

        Raises:
            RemoteUnavailable: on any failure or an empty answer
        """
        content = (
            f"Analyze this data and {prompt}.\n"
            f"Data columns: {', '.join(sample.columns)}\n"
            f"Sample: {json.dumps(sample.records(), default=str)}\n"
            f"Provide analysis:"
        )
        text = self.call_api(self.system_prompt, [{"role": "user", "content": content}]).strip()
        if not text:
            raise RemoteUnavailable("Empty insight")
        return text[:config.REMOTE_INSIGHT_MAX_CHARS]

    def try_remote_insight(self, prompt: str, sample: Table) -> Optional[str]:
        """Best-effort insight, bounded by the configured timeout. None on any failure."""
        try:
            return call_with_deadline(lambda: self.insight(prompt, sample), self.timeout)
        except RemoteUnavailable as e:
            logger.info("Remote insight unavailable, using local processing only: %s", e)
            return None


def try_remote_insight(prompt: str, sample: Table) -> Optional[str]:
    """
    Module-level convenience: build an InsightBot if remote calls are
    configured and ask it for an insight. Returns None when unavailable.
    """
    if not remote_available():
        return None
    try:
        bot = InsightBot()
    except ValueError as e:
        logger.info("Remote insight disabled: %s", e)
        return None
    return bot.try_remote_insight(prompt, sample)
