"""
Tests for language-model message enrichment.
"""

from datetime import datetime
from types import SimpleNamespace

import httpx
import openai
import pytest

from worklog_pulse.enrichment import Enricher, EnrichmentError, parse_celebration_response


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_enricher(completions: FakeCompletions) -> Enricher:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return Enricher("sk-test", model="gpt-test", client=client)


def test_parse_fenced_json():
    raw = '```json\n{"message": "Happy birthday ana@example.com!", "emails": ["ana@example.com"]}\n```'

    parsed = parse_celebration_response(raw)

    assert parsed.message == "Happy birthday ana@example.com!"
    assert parsed.emails == ["ana@example.com"]


@pytest.mark.parametrize("raw", ["not json", '{"emails": []}', '{"message": "  "}', "[1, 2]"])
def test_parse_rejects_unusable_output(raw):
    with pytest.raises(EnrichmentError):
        parse_celebration_response(raw)


@pytest.mark.asyncio
async def test_celebration_message_sends_system_prompt():
    completions = FakeCompletions('{"message": "Party!", "emails": ["ana@example.com"]}')
    enricher = make_enricher(completions)

    result = await enricher.celebration_message(
        "ana@example.com - birthday on 24 December", datetime(2024, 12, 23, 9, 0), "Keep it short"
    )

    assert result.message == "Party!"
    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["temperature"] == 0.7
    assert call["messages"][0]["role"] == "system"
    assert "Keep it short" in call["messages"][1]["content"]
    assert "Monday, December 23, 2024" in call["messages"][1]["content"]


@pytest.mark.asyncio
async def test_api_errors_become_enrichment_errors():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    completions = FakeCompletions(error=openai.APIConnectionError(request=request))

    with pytest.raises(EnrichmentError):
        await make_enricher(completions).feedback_summary("Feedback for <@U1>: great")


@pytest.mark.asyncio
async def test_empty_completion_is_an_error():
    with pytest.raises(EnrichmentError):
        await make_enricher(FakeCompletions("")).feedback_summary("text")
