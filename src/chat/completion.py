"""Client for an OpenAI-compatible chat completion service."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx

from src.chat.models import CompletionResult

logger = logging.getLogger(__name__)


class CompletionService(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        n: int = 1,
    ) -> CompletionResult: ...


def _parse_error(resp: httpx.Response) -> tuple[str | None, str | None]:
    try:
        error = resp.json().get("error") or {}
    except (json.JSONDecodeError, AttributeError):
        return str(resp.status_code), resp.text or None
    if not isinstance(error, dict):
        return str(resp.status_code), str(error)
    code = error.get("code") or error.get("type") or str(resp.status_code)
    return str(code), error.get("message")


class CompletionClient:
    """Sends role-tagged message lists to ``/v1/chat/completions``."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("Please configure API key")
        self._url = f"{api_url.rstrip('/')}/v1/chat/completions"
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        n: int = 1,
    ) -> CompletionResult:
        request_body: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "n": n,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self._url, json=request_body, headers=headers, timeout=self._timeout,
                )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning("Completion service unreachable: %s", exc)
            return CompletionResult(
                ok=False,
                error_code="upstream_unavailable",
                error_message=str(exc) or None,
            )

        if resp.status_code >= 400:
            code, message = _parse_error(resp)
            return CompletionResult(ok=False, error_code=code, error_message=message)

        try:
            choices = resp.json().get("choices", [])
            texts = [c.get("message", {}).get("content") or "" for c in choices]
        except (json.JSONDecodeError, AttributeError):
            return CompletionResult(
                ok=False, error_code="bad_response", error_message=resp.text or None,
            )
        if not texts:
            return CompletionResult(ok=False, error_code="no_choices")
        return CompletionResult(ok=True, choices=texts)
