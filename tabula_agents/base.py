"""
Base class and shared utilities for all tabula-agents bots.
"""

import json
import os
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Any, Callable, Dict, List

import anthropic

from . import config

DEFAULT_MODEL = config.DEFAULT_MODEL


class RemoteUnavailable(RuntimeError):
    """The optional model call failed: no key, timeout, API error or unusable reply."""


def clean_json_string(json_str):
    """
    Clean common JSON formatting issues before parsing:
    - Remove trailing commas before closing brackets
    - Remove comments
    - Strip whitespace
    """
    json_str = re.sub(r'//.*?$', '', json_str, flags=re.MULTILINE)
    json_str = re.sub(r'/\*.*?\*/', '', json_str, flags=re.DOTALL)
    json_str = re.sub(r',(\s*[}\]])', r'\1', json_str)
    json_str = re.sub(r',(\s*,)+', ',', json_str)
    return json_str.strip()


def remote_available() -> bool:
    """True when remote calls are enabled and an API key is configured."""
    api_key = os.getenv('ANTHROPIC_API_KEY') or config.ANTHROPIC_API_KEY
    return bool(config.REMOTE_ENABLED and api_key and api_key != 'your_api_key_here'
                and config.REMOTE_TIMEOUT_SECONDS > 0)


def call_with_deadline(func: Callable[[], Any], timeout: float) -> Any:
    """
    Run `func` on a worker thread and wait at most `timeout` seconds.

    The worker is not joined on timeout; its result is simply discarded.

    Raises:
        RemoteUnavailable: on timeout or any error raised by `func`
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout:
        raise RemoteUnavailable(f"Remote call timed out after {timeout}s")
    except RemoteUnavailable:
        raise
    except Exception as e:
        raise RemoteUnavailable(str(e)) from e
    finally:
        executor.shutdown(wait=False)


class LLMBaseAgent:
    """Base class for all Claude-powered agents."""

    def __init__(self, model=DEFAULT_MODEL, max_tokens=1000, timeout=None):
        api_key = os.getenv('ANTHROPIC_API_KEY') or config.ANTHROPIC_API_KEY
        if not api_key or api_key == 'your_api_key_here':
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable not set. "
                "Get your key at https://console.anthropic.com/settings/keys"
            )
        self.timeout = timeout if timeout is not None else config.REMOTE_TIMEOUT_SECONDS
        # Failures fall straight through to local processing, so no retries
        self.client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens

    def call_api(self, system_prompt: str, messages: List[Dict]) -> str:
        """
        Call Claude API.

        Args:
            system_prompt: System prompt string
            messages: List of {"role": "user"|"assistant", "content": "..."} dicts

        Returns:
            Response text string

        Raises:
            RemoteUnavailable: on any API error or an empty reply
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=messages
            )
        except Exception as e:
            raise RemoteUnavailable(f"Claude API error: {str(e)}") from e
        if not response.content:
            raise RemoteUnavailable("Claude API returned an empty response")
        return response.content[0].text

    def parse_json_response(self, response_text):
        """Parse JSON from a response string, with cleaning for common LLM quirks."""
        # Strip markdown code fences if present
        if "```json" in response_text:
            start = response_text.find("```json") + 7
            end = response_text.find("```", start)
            response_text = response_text[start:end].strip()
        elif "```" in response_text:
            start = response_text.find("```") + 3
            end = response_text.find("```", start)
            response_text = response_text[start:end].strip()

        cleaned = clean_json_string(response_text)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse JSON response: {e}")
