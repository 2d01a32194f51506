"""Model calls for skill categorization, routed through litellm.

litellm is imported inside :func:`acompletion` so importing clawdtm never
needs a provider configured; tests patch that function. :class:`LLMClient`
adds the configured model, ordered fallbacks, rate-limit retries and maps
provider exceptions onto the small hierarchy below.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from clawdtm.config.models import LLMSettings

logger = logging.getLogger(__name__)


async def acompletion(**kwargs: Any) -> Any:
    """Single entry point to ``litellm.acompletion``; unsupported params are dropped."""
    import litellm

    litellm.drop_params = True
    return await litellm.acompletion(**kwargs)


class LLMError(Exception):
    """A model call or its answer could not be used."""

    def __init__(self, message: str, *, model: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.model = model
        self.cause = cause


class AuthenticationError(LLMError):
    """Provider rejected the API key; no fallback is tried."""


class RateLimitError(LLMError):
    """Provider kept throttling after the retries."""


class ContextWindowExceededError(LLMError):
    """Prompt too long for the model."""


class ServiceUnavailableError(LLMError):
    """Every model failed for another reason."""


def _is_auth_failure(exc: Exception) -> bool:
    name = type(exc).__name__
    return "Authentication" in name or "InvalidApiKey" in name


def _is_throttled(exc: Exception) -> bool:
    return "RateLimit" in type(exc).__name__ or "rate_limit" in str(exc).lower()


def classify_error(exc: Exception, model: str) -> LLMError:
    """Pick the clawdtm error for a provider exception from its type name and message."""
    name = type(exc).__name__
    text = str(exc)
    lowered = text.lower()
    if _is_auth_failure(exc) or "authentication" in lowered or all(word in lowered for word in ("invalid", "api", "key")):
        error_cls: type[LLMError] = AuthenticationError
    elif _is_throttled(exc) or "too many requests" in lowered:
        error_cls = RateLimitError
    elif "ContextWindow" in name or ("context" in lowered and "window" in lowered):
        error_cls = ContextWindowExceededError
    elif "ServiceUnavailable" in name or "503" in text or "unavailable" in lowered:
        error_cls = ServiceUnavailableError
    else:
        return ServiceUnavailableError(f"LLM call failed: {text}", model=model, cause=exc)
    return error_cls(text, model=model, cause=exc)


@dataclass
class LLMResponse:
    content: str | None
    model: str
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMClient:
    """Configured model with fallbacks.

    Each model gets up to ``max_retries`` attempts while it is rate limited;
    any other failure moves on to the next fallback. An authentication failure
    ends the call at once.
    """

    def __init__(self, settings: LLMSettings, *, max_retries: int = 2, retry_delay_seconds: float = 1.0) -> None:
        self.settings = settings
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

    @property
    def is_configured(self) -> bool:
        if not self.settings.api_key_env:
            return True
        return bool(os.environ.get(self.settings.api_key_env))

    async def _try_model(self, model: str, params: dict[str, Any]) -> Any:
        attempt = 1
        while True:
            try:
                return await acompletion(**params, model=model)
            except Exception as exc:
                if _is_throttled(exc) and not _is_auth_failure(exc) and attempt < self.max_retries:
                    attempt += 1
                    await asyncio.sleep(self.retry_delay_seconds)
                    continue
                raise

    async def _complete_with_fallbacks(self, params: dict[str, Any]) -> tuple[Any, str]:
        models = [self.settings.model, *self.settings.fallback_models]
        failure: tuple[Exception, LLMError] | None = None
        for model in models:
            try:
                return await self._try_model(model, params), model
            except Exception as exc:
                error = classify_error(exc, model)
                logger.warning(
                    "LLM call failed model=%s error_type=%s message=%.200s", model, type(exc).__name__, str(exc)
                )
                if _is_auth_failure(exc):
                    raise error from exc
                failure = (exc, error)
        if failure is None:
            raise ServiceUnavailableError("No model configured")
        cause, error = failure
        raise error from cause

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        params: dict[str, Any] = {
            "messages": messages,
            "temperature": self.settings.temperature if temperature is None else temperature,
            "max_tokens": self.settings.max_tokens if max_tokens is None else max_tokens,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        response, model = await self._complete_with_fallbacks(params)
        message = response.choices[0].message
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=getattr(message, "content", None) or None,
            model=model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) if usage else 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) if usage else 0,
        )

    def decode_json(self, response: LLMResponse) -> dict[str, Any]:
        """Decode a JSON object answer; fenced ```json blocks are accepted."""
        text = (response.content or "").strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text[:4].lower() == "json":
                text = text[4:]
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LLMError(f"Model returned invalid JSON: {e}", model=response.model, cause=e) from e
        if not isinstance(data, dict):
            raise LLMError("Model returned a non-object JSON answer", model=response.model)
        return data
