"""Async OpenAI / Anthropic API wrappers with a single attempt per call."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import anthropic
import openai

from downfolio.errors import (
    AuthenticationFailedError,
    EmptyResponseError,
    ModelAccessError,
    ProviderAPIError,
    ProviderError,
    RateLimitedError,
)
from downfolio.models.document import Provider

logger = logging.getLogger(__name__)

KNOWN_MODELS: dict[Provider, tuple[str, ...]] = {
    Provider.OPENAI: ("gpt-4o-mini", "gpt-4o", "gpt-4-turbo"),
    Provider.ANTHROPIC: ("claude-sonnet-4-5", "claude-haiku-4-5", "claude-opus-4-5"),
}

_AUTH_CODES = {"invalid_api_key", "authentication_error"}
_RATE_LIMIT_CODES = {"rate_limit_exceeded", "rate_limit_error", "insufficient_quota"}
_MODEL_ACCESS_CODES = {"model_not_found", "permission_error"}
_MODEL_ACCESS_PHRASES = ("does not have access", "does not exist or you do not have access")


@dataclass
class LLMResponse:
    """Response from the LLM including usage metadata."""

    text: str
    input_tokens: int
    output_tokens: int


def _error_code(exc: Exception) -> str | None:
    """Pull the provider's error code/type out of an SDK exception body.

    OpenAI bodies are the error object itself ({"code": ..., "type": ...});
    Anthropic wraps it ({"type": "error", "error": {"type": ...}}).
    """
    body = getattr(exc, "body", None)
    if not isinstance(body, dict):
        return None
    inner = body.get("error") if isinstance(body.get("error"), dict) else body
    return inner.get("code") or inner.get("type")


def classify_provider_error(provider: Provider, exc: Exception, model: str) -> ProviderError:
    """Map an SDK exception to a typed, human-actionable error.

    Structured status codes and error codes are checked first; message
    matching is only used when neither identifies the failure.
    """
    name = Provider(provider).display_name
    key_name = f"{Provider(provider).value.upper()}_API_KEY"
    status = getattr(exc, "status_code", None)
    code = _error_code(exc)
    message = str(getattr(exc, "message", None) or exc)
    prefix = f"{name} API error: {message}"

    if status == 401 or code in _AUTH_CODES:
        return AuthenticationFailedError(
            f"{name} API authentication error: {message}\n\n"
            f"This usually means your API key is invalid or expired. Please check your {key_name}.",
            provider=provider,
        )
    if status == 429 or code in _RATE_LIMIT_CODES:
        return RateLimitedError(
            f"{name} API rate limit error: {message}\n\n"
            "Rate limit exceeded. Please wait a moment and try again.",
            provider=provider,
        )
    if status == 403 or code in _MODEL_ACCESS_CODES or any(
        phrase in message for phrase in _MODEL_ACCESS_PHRASES
    ):
        return ModelAccessError(
            f"{prefix}\n\n"
            f'API key scoping issue: your API key doesn\'t have access to the model "{model}".\n\n'
            "This usually happens when:\n"
            "1. Your API key has restricted permissions\n"
            "2. Your account doesn't have access to this model yet\n"
            "3. The API key belongs to a different organization\n\n"
            "Check the key's permissions in your provider console, or generate a new key "
            "with full model access.",
            provider=provider,
        )
    if "model" in message.lower():
        available = ", ".join(KNOWN_MODELS[Provider(provider)])
        return ProviderAPIError(
            f"{prefix}\n\nThe model name may be invalid. Available models: {available}",
            provider=provider,
        )
    return ProviderAPIError(prefix, provider=provider)


class BaseLLMClient(ABC):
    """One provider, one attempt per call."""

    provider: Provider
    _api_error: type[Exception]

    @abstractmethod
    async def _call_api(
        self,
        prompt: str,
        system: str,
        model: str,
        temperature: float | None,
        max_tokens: int,
    ) -> LLMResponse:
        """Make exactly one API call and extract its text (may be empty)."""

    async def generate(
        self,
        prompt: str,
        system: str = "",
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """Send a prompt and return the text response with usage."""
        logger.debug("LLM call: provider=%s model=%s", self.provider.value, model)
        try:
            response = await self._call_api(
                prompt=prompt,
                system=system,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except self._api_error as e:
            logger.error("LLM call failed", exc_info=True)
            raise classify_provider_error(self.provider, e, model) from e

        if not response.text:
            raise EmptyResponseError(
                f"No content returned from {self.provider.display_name} API",
                provider=self.provider,
            )
        logger.debug(
            "LLM response: %d input, %d output tokens", response.input_tokens, response.output_tokens
        )
        return response


class OpenAIClient(BaseLLMClient):
    provider = Provider.OPENAI
    _api_error = openai.APIError

    def __init__(self, api_key: str, timeout: float | None = None):
        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = openai.AsyncOpenAI(**kwargs)

    async def _call_api(self, prompt, system, model, temperature, max_tokens) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        completion = await self.client.chat.completions.create(**kwargs)

        text = ""
        if completion.choices and completion.choices[0].message:
            text = completion.choices[0].message.content or ""
        usage = completion.usage
        return LLMResponse(
            text=text,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


class AnthropicClient(BaseLLMClient):
    provider = Provider.ANTHROPIC
    _api_error = anthropic.APIError

    def __init__(self, api_key: str, timeout: float | None = None):
        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**kwargs)

    async def _call_api(self, prompt, system, model, temperature, max_tokens) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature
        message = await self.client.messages.create(**kwargs)

        text = ""
        if message.content:
            text = getattr(message.content[0], "text", None) or ""
        return LLMResponse(
            text=text,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )


ClientFactory = Callable[..., BaseLLMClient]


def create_client(provider: Provider, api_key: str, timeout: float | None = None) -> BaseLLMClient:
    """Instantiate the client for ``provider``."""
    provider = Provider(provider)
    if provider is Provider.OPENAI:
        return OpenAIClient(api_key=api_key, timeout=timeout)
    return AnthropicClient(api_key=api_key, timeout=timeout)
