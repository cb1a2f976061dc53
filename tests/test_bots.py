import time
from unittest.mock import MagicMock

import pytest

# Temporarily add the parent directory to the path to allow imports
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tabula_agents import base, config
from tabula_agents.base import RemoteUnavailable, call_with_deadline, clean_json_string
from tabula_agents.formula_bot import FormulaBot, FormulaGenerator
from tabula_agents.insight_bot import InsightBot, try_remote_insight
from tabula_agents.table import Table


def _reply(text):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    return response


@pytest.fixture
def claude(monkeypatch):
    """
    Configure a fake API key and replace the Anthropic client with a mock.
    """
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'test-key')
    monkeypatch.setattr(config, 'REMOTE_ENABLED', True)
    monkeypatch.setattr(config, 'REMOTE_TIMEOUT_SECONDS', 5.0)
    client = MagicMock()
    factory = MagicMock(return_value=client)
    monkeypatch.setattr(base.anthropic, 'Anthropic', factory)
    client.factory = factory
    return client


@pytest.fixture
def sample():
    return Table.from_records([{'region': 'West', 'revenue': '100'}])


def test_clean_json_string():
    assert clean_json_string('{"a": 1, // note\n}') == '{"a": 1 \n}'


def test_call_with_deadline_times_out():
    with pytest.raises(RemoteUnavailable):
        call_with_deadline(lambda: time.sleep(1), 0.05)


def test_call_with_deadline_wraps_errors():
    def boom():
        raise KeyError("nope")

    with pytest.raises(RemoteUnavailable):
        call_with_deadline(boom, 1)


def test_client_is_built_without_retries(claude):
    InsightBot()
    kwargs = claude.factory.call_args.kwargs
    assert kwargs['api_key'] == 'test-key'
    assert kwargs['max_retries'] == 0
    assert kwargs['timeout'] == 5.0


def test_missing_key_raises(monkeypatch):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', '')
    with pytest.raises(ValueError):
        InsightBot()


def test_insight_returns_text(claude, sample):
    claude.messages.create.return_value = _reply("  West is the only region.  ")
    assert try_remote_insight("summarize", sample) == "West is the only region."

    content = claude.messages.create.call_args.kwargs['messages'][0]['content']
    assert "Data columns: region, revenue" in content


def test_insight_is_truncated(claude, sample):
    claude.messages.create.return_value = _reply("x" * 1000)
    assert len(try_remote_insight("summarize", sample)) == config.REMOTE_INSIGHT_MAX_CHARS


@pytest.mark.parametrize("outcome", [
    RuntimeError("503 Service Unavailable"),
    _reply("   "),
])
def test_insight_failure_is_none(claude, sample, outcome):
    """
    API errors and empty answers both look like "no insight" to callers.
    """
    if isinstance(outcome, Exception):
        claude.messages.create.side_effect = outcome
    else:
        claude.messages.create.return_value = outcome
    assert try_remote_insight("summarize", sample) is None


def test_insight_without_key_skips_client(monkeypatch, sample):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', '')
    factory = MagicMock()
    monkeypatch.setattr(base.anthropic, 'Anthropic', factory)
    assert try_remote_insight("summarize", sample) is None
    factory.assert_not_called()


def test_formula_bot_accepts_valid_reply(claude):
    claude.messages.create.return_value = _reply(
        '```json\n{"formula": "=(revenue - cost) / revenue", "explanation": "Margin.",}\n```'
    )
    spec = FormulaBot().interpret_formula("margin", [{'revenue': '10', 'cost': '4'}], ['revenue', 'cost'])
    assert spec == {'formula': "=(revenue - cost) / revenue", 'explanation': "Margin."}


@pytest.mark.parametrize("reply", [
    '{"formula": "=EVAL(A1)", "explanation": "Not allowed."}',
    '{"formula": "=SUM(A:A", "explanation": "Broken."}',
    '{"explanation": "No formula."}',
    'I cannot help with that.',
])
def test_formula_bot_rejects_unusable_reply(claude, reply):
    claude.messages.create.return_value = _reply(reply)
    with pytest.raises(RemoteUnavailable):
        FormulaBot().interpret_formula("anything", [{'a': '1'}], ['a'])


def test_validate_formula_spec(claude):
    bot = FormulaBot()
    assert bot.validate_formula_spec({'formula': '=SUM(A:A)', 'explanation': 'Total.'}) == (True, "")
    is_valid, error = bot.validate_formula_spec({'formula': '=SUM(A:A)', 'explanation': ''})
    assert not is_valid and 'explanation' in error
    assert bot.validate_formula_spec(['not', 'a', 'dict'])[0] is False


def test_generator_uses_remote_formula(claude):
    claude.messages.create.return_value = _reply('{"formula": "=SUM(B:B)", "explanation": "Total revenue."}')
    generator = FormulaGenerator()
    assert isinstance(generator.bot, FormulaBot)
    result = generator.generate_formula("total", [{'name': 'a', 'revenue': '1'}])
    assert result == {'formula': "=SUM(B:B)", 'explanation': "Total revenue."}


def test_generator_falls_back_to_templates(claude):
    claude.messages.create.side_effect = RuntimeError("timeout")
    result = FormulaGenerator().generate_formula("total", [{'name': 'a', 'revenue': '1'}])
    assert result['formula'] == "=SUM(B:B)"


def test_generator_without_key_is_local(monkeypatch):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', '')
    assert FormulaGenerator().bot is None
