"""Unit tests for the litellm wrapper."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clawdtm.config.models import LLMSettings
from clawdtm.integrations.llm import (
    AuthenticationError,
    LLMClient,
    LLMError,
    LLMResponse,
    RateLimitError,
    ServiceUnavailableError,
)


class AuthenticationFailed(Exception):
    pass


class RateLimitHit(Exception):
    pass


def _response(content: str | None = "ok") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4),
    )


@pytest.fixture
def patch_completion(monkeypatch):
    def _patch(mock: AsyncMock) -> AsyncMock:
        monkeypatch.setattr("clawdtm.integrations.llm.acompletion", mock)
        return mock

    return _patch


@pytest.mark.asyncio
async def test_complete_uses_settings(patch_completion) -> None:
    mock = patch_completion(AsyncMock(return_value=_response("hello")))
    client = LLMClient(LLMSettings(model="primary", temperature=0.3, max_tokens=50))

    response = await client.complete([{"role": "user", "content": "hi"}])
    assert response.content == "hello"
    assert response.total_tokens == 7
    kwargs = mock.await_args.kwargs
    assert (kwargs["model"], kwargs["temperature"], kwargs["max_tokens"]) == ("primary", 0.3, 50)
    assert "response_format" not in kwargs


@pytest.mark.asyncio
async def test_falls_back_to_next_model(patch_completion) -> None:
    mock = patch_completion(AsyncMock(side_effect=[RuntimeError("503 unavailable"), _response()]))
    client = LLMClient(LLMSettings(model="primary", fallback_models=["backup"]))

    response = await client.complete([], json_mode=True)
    assert response.model == "backup"
    assert [call.kwargs["model"] for call in mock.await_args_list] == ["primary", "backup"]


@pytest.mark.asyncio
async def test_authentication_error_stops_immediately(patch_completion) -> None:
    mock = patch_completion(AsyncMock(side_effect=AuthenticationFailed("bad key")))
    client = LLMClient(LLMSettings(model="primary", fallback_models=["backup"]))

    with pytest.raises(AuthenticationError):
        await client.complete([])
    assert mock.await_count == 1


@pytest.mark.asyncio
async def test_rate_limit_retries_same_model(patch_completion) -> None:
    mock = patch_completion(AsyncMock(side_effect=[RateLimitHit("slow down"), _response()]))
    client = LLMClient(LLMSettings(model="primary"), retry_delay_seconds=0)

    response = await client.complete([])
    assert response.model == "primary"
    assert mock.await_count == 2


@pytest.mark.asyncio
async def test_rate_limit_exhausted_maps_error(patch_completion) -> None:
    patch_completion(AsyncMock(side_effect=RateLimitHit("too many requests")))
    client = LLMClient(LLMSettings(model="primary"), retry_delay_seconds=0)
    with pytest.raises(RateLimitError):
        await client.complete([])


@pytest.mark.asyncio
async def test_all_models_failing(patch_completion) -> None:
    patch_completion(AsyncMock(side_effect=ValueError("weird")))
    client = LLMClient(LLMSettings(model="primary", fallback_models=["backup"]))
    with pytest.raises(ServiceUnavailableError, match="LLM call failed"):
        await client.complete([])


def test_is_configured_reads_named_env(monkeypatch) -> None:
    monkeypatch.delenv("CLAWDTM_TEST_KEY", raising=False)
    client = LLMClient(LLMSettings(api_key_env="CLAWDTM_TEST_KEY"))
    assert not client.is_configured
    monkeypatch.setenv("CLAWDTM_TEST_KEY", "sk-test")
    assert client.is_configured
    assert LLMClient(LLMSettings(api_key_env="")).is_configured


@pytest.mark.parametrize(
    "content",
    ['{"category": "web"}', '```json\n{"category": "web"}\n```', '  {"category": "web"}  '],
)
def test_decode_json_accepts_fenced_answers(content) -> None:
    client = LLMClient(LLMSettings())
    assert client.decode_json(LLMResponse(content=content, model="m", prompt_tokens=0, completion_tokens=0)) == {
        "category": "web"
    }


@pytest.mark.parametrize("content", [None, "not json", '["web"]'])
def test_decode_json_rejects_non_objects(content) -> None:
    client = LLMClient(LLMSettings())
    with pytest.raises(LLMError):
        client.decode_json(LLMResponse(content=content, model="m", prompt_tokens=0, completion_tokens=0))
