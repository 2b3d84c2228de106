"""Tests for JSON extraction and the two LLM backends."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from mail_triage.config import Config
from mail_triage.errors import ClassificationError, ConfigurationError
from mail_triage.llm_client import call_anthropic_json, call_openai_json, extract_json_object

PAYLOAD = {
    "classifications": [
        {
            "email_index": 0,
            "category": "ACTIONABLE",
            "summary": "Pay {overdue} invoice",
            "action": "Pay by Friday",
            "context": ["a", "b", "c"],
        }
    ]
}


class TestExtractJsonObject:
    """Tests for extract_json_object()."""

    def test_bare_object(self) -> None:
        assert extract_json_object(json.dumps(PAYLOAD)) == PAYLOAD

    def test_nested_braces(self) -> None:
        text = '{"a": {"b": {"c": 1}}, "d": [{"e": 2}]}'
        assert extract_json_object(text) == {"a": {"b": {"c": 1}}, "d": [{"e": 2}]}

    def test_leading_and_trailing_prose(self) -> None:
        text = "Here is the classification:\n" + json.dumps(PAYLOAD) + "\nLet me know if {anything} else."
        assert extract_json_object(text) == PAYLOAD

    def test_braces_inside_strings(self) -> None:
        """A '}' inside a JSON string does not close the object."""
        text = 'Sure! {"summary": "use } and { freely", "n": 1} trailing'
        assert extract_json_object(text) == {"summary": "use } and { freely", "n": 1}

    def test_escaped_quotes_inside_strings(self) -> None:
        text = r'{"summary": "he said \"hi}\"", "n": 2}'
        assert extract_json_object(text) == {"summary": 'he said "hi}"', "n": 2}

    def test_skips_non_json_brace_group(self) -> None:
        """Prose braces before the payload are passed over."""
        text = "Result {see below}:\n```json\n" + json.dumps(PAYLOAD) + "\n```"
        assert extract_json_object(text) == PAYLOAD

    def test_absent_json_fails(self) -> None:
        with pytest.raises(ClassificationError):
            extract_json_object("I could not classify these emails.")

    def test_unbalanced_json_fails(self) -> None:
        with pytest.raises(ClassificationError):
            extract_json_object('{"classifications": [')

    def test_empty_text_fails(self) -> None:
        with pytest.raises(ClassificationError):
            extract_json_object("   ")


def _call(handler, fn, config: Config) -> Any:
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await fn(config, http, [{"role": "user", "content": "prompt"}])

    return asyncio.run(main())


class TestAnthropicBackend:
    """Tests for call_anthropic_json()."""

    def test_request_and_prose_wrapped_response(self, config: Config) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            text = "Here you go:\n\n" + json.dumps(PAYLOAD) + "\n\nHope this helps!"
            return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})

        result = _call(handler, call_anthropic_json, config)

        assert result == PAYLOAD
        request = seen[0]
        assert request.headers["x-api-key"] == "ant-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["model"] == config.anthropic_model_name
        assert body["max_tokens"] == 4000
        assert body["messages"] == [{"role": "user", "content": "prompt"}]

    def test_http_error(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(529, json={"error": {"type": "overloaded_error"}})

        with pytest.raises(ClassificationError, match="HTTP error"):
            _call(handler, call_anthropic_json, config)

    def test_null_text_block_is_ignored(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            blocks = [
                {"type": "text", "text": None},
                {"type": "text", "text": json.dumps(PAYLOAD)},
            ]
            return httpx.Response(200, json={"content": blocks})

        assert _call(handler, call_anthropic_json, config) == PAYLOAD

    def test_only_null_text_is_classification_error(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": [{"type": "text", "text": None}]})

        with pytest.raises(ClassificationError):
            _call(handler, call_anthropic_json, config)

    def test_no_content_blocks(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": []})

        with pytest.raises(ClassificationError):
            _call(handler, call_anthropic_json, config)

    def test_missing_key(self, config: Config) -> None:
        config.anthropic_api_key = ""
        with pytest.raises(ConfigurationError):
            _call(lambda r: httpx.Response(200), call_anthropic_json, config)


class TestOpenAIBackend:
    """Tests for call_openai_json()."""

    def test_json_mode_request_and_bare_response(self, config: Config) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": json.dumps(PAYLOAD)}}]},
            )

        result = _call(handler, call_openai_json, config)

        assert result == PAYLOAD
        request = seen[0]
        assert request.headers["authorization"] == "Bearer oai-key"
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        assert body["model"] == "gpt-4o-mini"

    def test_non_json_content(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": [{"message": {"content": "not json"}}]})

        with pytest.raises(ClassificationError):
            _call(handler, call_openai_json, config)

    def test_no_choices(self, config: Config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(ClassificationError):
            _call(handler, call_openai_json, config)

    def test_missing_key(self, config: Config) -> None:
        config.openai_api_key = ""
        with pytest.raises(ConfigurationError):
            _call(lambda r: httpx.Response(200), call_openai_json, config)
