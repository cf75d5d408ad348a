"""Tests for the completion-service client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.chat.completion import CompletionClient


def _mock_client(response: MagicMock | None = None, error: Exception | None = None) -> AsyncMock:
    mock_client = AsyncMock()
    if error is not None:
        mock_client.post.side_effect = error
    else:
        mock_client.post.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _response(status_code: int, payload: object) -> MagicMock:
    resp = MagicMock(status_code=status_code, text=json.dumps(payload))
    resp.json.return_value = payload
    return resp


def _client() -> CompletionClient:
    return CompletionClient("http://llm:8000/", "sk-test", "gpt-test", timeout=12.0)


_MESSAGES = [{"role": "user", "content": "hello"}]


class TestCompletionClient:
    def test_missing_api_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="API key"):
            CompletionClient("http://llm:8000", "", "gpt-test")

    @pytest.mark.asyncio
    async def test_successful_completion(self) -> None:
        payload = {"choices": [{"message": {"content": "Hi!"}}, {"message": {"content": "Yo"}}]}
        mock_client = _mock_client(_response(200, payload))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=2500, n=2)

        assert result.ok is True
        assert result.choices == ["Hi!", "Yo"]

    @pytest.mark.asyncio
    async def test_request_format(self) -> None:
        payload = {"choices": [{"message": {"content": "ok"}}]}
        mock_client = _mock_client(_response(200, payload))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            await _client().complete(_MESSAGES, temperature=0.5, max_tokens=2500)

        args, kwargs = mock_client.post.call_args
        assert args[0] == "http://llm:8000/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 12.0
        assert kwargs["json"] == {
            "model": "gpt-test",
            "messages": _MESSAGES,
            "temperature": 0.5,
            "max_tokens": 2500,
            "n": 1,
        }

    @pytest.mark.asyncio
    async def test_error_response_carries_code_and_message(self) -> None:
        payload = {"error": {"code": "rate_limit_exceeded", "message": "slow down"}}
        mock_client = _mock_client(_response(429, payload))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=10)

        assert result.ok is False
        assert result.error_code == "rate_limit_exceeded"
        assert result.error_message == "slow down"

    @pytest.mark.asyncio
    async def test_error_without_body_uses_status(self) -> None:
        resp = MagicMock(status_code=503, text="")
        resp.json.side_effect = json.JSONDecodeError("no json", "", 0)
        mock_client = _mock_client(resp)

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=10)

        assert result.ok is False
        assert result.error_code == "503"
        assert result.error_message is None

    @pytest.mark.asyncio
    async def test_connect_error_is_upstream_unavailable(self) -> None:
        mock_client = _mock_client(error=httpx.ConnectError("refused"))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=10)

        assert result.ok is False
        assert result.error_code == "upstream_unavailable"

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_unavailable(self) -> None:
        mock_client = _mock_client(error=httpx.ReadTimeout("too slow"))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=10)

        assert result.error_code == "upstream_unavailable"

    @pytest.mark.asyncio
    async def test_empty_choices_is_failure(self) -> None:
        mock_client = _mock_client(_response(200, {"choices": []}))

        with patch("src.chat.completion.httpx.AsyncClient", return_value=mock_client):
            result = await _client().complete(_MESSAGES, temperature=0.5, max_tokens=10)

        assert result.ok is False
        assert result.error_code == "no_choices"
