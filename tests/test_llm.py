"""
Tests for the hosted LLM integration

Tests for:
- CompletionClient: async HTTP client, payload, error translation, health checks
- Prompt templates: guardrail system prompt and context formatting
"""

import httpx
import pytest

from optiassist.errors import CompletionError
from optiassist.llm.completion_client import CompletionClient
from optiassist.llm.prompt_templates import (
    SYSTEM_PROMPT,
    USER_TEMPLATE,
    build_context,
    build_messages,
)


def _mock_http(mocker, payload=None, side_effect=None, status_code=200):
    mock_response = mocker.Mock()
    mock_response.status_code = status_code
    mock_response.json.return_value = payload
    mock_response.raise_for_status = mocker.Mock()

    mock_client = mocker.AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
        mock_client.get.side_effect = side_effect
    else:
        mock_client.post.return_value = mock_response
        mock_client.get.return_value = mock_response
    mock_client.__aenter__ = mocker.AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = mocker.AsyncMock(return_value=False)

    mocker.patch("httpx.AsyncClient", return_value=mock_client)
    return mock_client


def _chat_payload(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


# ============================================
# CompletionClient Tests
# ============================================


class TestCompletionClientInit:
    """Tests for CompletionClient configuration."""

    @pytest.mark.unit
    def test_custom_configuration(self):
        client = CompletionClient(
            api_key="sk-test",
            model="gpt-4o",
            base_url="http://fake/v1/",
            timeout=12,
            temperature=0.0,
            max_tokens=128,
        )
        assert client.model == "gpt-4o"
        assert client.base_url == "http://fake/v1"
        assert client.timeout == 12
        assert client.temperature == 0.0
        assert client.max_tokens == 128


class TestCompletionClientComplete:
    """Tests for the complete method."""

    @pytest.mark.unit
    async def test_returns_content_verbatim(self, mocker):
        _mock_http(mocker, _chat_payload("  Patients should avoid driving for 4-6 hours.\n"))
        client = CompletionClient(api_key="k", base_url="http://fake/v1")

        answer = await client.complete(build_messages("ctx", "q"))
        assert answer == "  Patients should avoid driving for 4-6 hours.\n"

    @pytest.mark.unit
    async def test_sends_model_messages_and_parameters(self, mocker):
        mock_client = _mock_http(mocker, _chat_payload("ok"))
        client = CompletionClient(
            api_key="k",
            model="gpt-4o-mini",
            base_url="http://fake/v1",
            temperature=0.3,
            max_tokens=200,
        )
        messages = build_messages("Context line", "Question?")

        await client.complete(messages)

        call = mock_client.post.call_args
        assert call.args[0] == "http://fake/v1/chat/completions"
        payload = call.kwargs["json"]
        assert payload["model"] == "gpt-4o-mini"
        assert payload["messages"] == messages
        assert payload["temperature"] == 0.3
        assert payload["max_tokens"] == 200

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["", "   ", None])
    async def test_empty_answer_raises(self, mocker, content):
        _mock_http(mocker, _chat_payload(content))
        client = CompletionClient(api_key="k", base_url="http://fake/v1")

        with pytest.raises(CompletionError):
            await client.complete(build_messages("ctx", "q"))

    @pytest.mark.unit
    async def test_malformed_response_raises(self, mocker):
        _mock_http(mocker, {"choices": []})
        client = CompletionClient(api_key="k", base_url="http://fake/v1")

        with pytest.raises(CompletionError):
            await client.complete(build_messages("ctx", "q"))

    @pytest.mark.unit
    async def test_timeout_raises_completion_error(self, mocker):
        _mock_http(mocker, side_effect=httpx.ReadTimeout("timed out"))
        client = CompletionClient(api_key="k", base_url="http://fake/v1")

        with pytest.raises(CompletionError):
            await client.complete(build_messages("ctx", "q"))


class TestCompletionClientHealth:
    """Tests for the health check."""

    @pytest.mark.unit
    async def test_healthy(self, mocker):
        _mock_http(mocker, {"data": []}, status_code=200)
        assert await CompletionClient(api_key="k", base_url="http://fake/v1").health_check() is True

    @pytest.mark.unit
    async def test_unreachable(self, mocker):
        _mock_http(mocker, side_effect=httpx.ConnectError("refused"))
        assert await CompletionClient(api_key="k", base_url="http://fake/v1").health_check() is False


# ============================================
# Prompt Template Tests
# ============================================


class TestPromptTemplates:
    """Tests for prompt construction."""

    @pytest.mark.unit
    def test_system_prompt_guardrails(self):
        prompt = SYSTEM_PROMPT.lower()
        assert "optometry" in prompt
        assert "do not provide medical diagnosis" in prompt
        assert "do not provide treatment instructions" in prompt
        assert "licensed professionals" in prompt

    @pytest.mark.unit
    def test_context_joined_nearest_first(self):
        assert build_context(["first", "second", "third"]) == "first\nsecond\nthird"
        assert build_context([]) == ""

    @pytest.mark.unit
    def test_messages_shape(self):
        messages = build_messages("A\nB", "What is covered?")

        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == SYSTEM_PROMPT
        assert messages[1]["content"] == "Context:\nA\nB\n\nQuestion: What is covered?"
        assert USER_TEMPLATE.startswith("Context:\n")
