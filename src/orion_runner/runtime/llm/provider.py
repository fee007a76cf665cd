"""Text-completion providers used to produce agent output.

Each provider turns a role prompt plus a context prompt into text, or raises
one of the classes in ``errors``. Providers hold no per-call state and may be
shared between concurrent runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import anthropic
import httpx
from loguru import logger

from ...config import LLMSettings
from ...constants import OPENAI_TEMPERATURE
from .errors import (
    AuthCompletionError,
    CompletionError,
    classify_failure,
    is_auth_or_availability,
)


@dataclass
class CompletionResult:
    """Normalized response from any provider."""

    text: str
    provider: str
    model: str


class CompletionProvider(ABC):
    name: str = ""

    @property
    @abstractmethod
    def model(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def complete(self, role_prompt: str, context_prompt: str, *, max_tokens: int) -> CompletionResult:
        raise NotImplementedError


def _timeout(seconds: float) -> httpx.Timeout:
    return httpx.Timeout(seconds, connect=min(seconds, 30.0))


class AnthropicProvider(CompletionProvider):
    """Anthropic messages API.

    SDK-level retries are disabled; backoff is owned by the task executor's
    retry policy so the attempt bound holds.
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str,
        timeout_seconds: float,
        client: Any = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise AuthCompletionError("Anthropic key missing", provider=self.name)
            self._client = anthropic.Anthropic(
                api_key=self._api_key,
                timeout=_timeout(self._timeout_seconds),
                max_retries=0,
            )
        return self._client

    def complete(self, role_prompt: str, context_prompt: str, *, max_tokens: int) -> CompletionResult:
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": context_prompt}],
        }
        if role_prompt:
            kwargs["system"] = role_prompt
        try:
            message = client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise classify_failure(str(exc.message), status=exc.status_code, provider=self.name) from exc
        except anthropic.APIConnectionError as exc:
            raise CompletionError(f"Anthropic connection failed: {exc}", provider=self.name) from exc

        text = "".join(
            getattr(block, "text", "") for block in (message.content or []) if getattr(block, "type", "") == "text"
        )
        return CompletionResult(text=text, provider=self.name, model=self._model)


class OpenAICompatibleProvider(CompletionProvider):
    """Any `/chat/completions` endpoint (OpenRouter by default)."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str,
        model: str,
        timeout_seconds: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
        return f"HTTP {response.status_code}"

    def complete(self, role_prompt: str, context_prompt: str, *, max_tokens: int) -> CompletionResult:
        if not self._api_key:
            raise AuthCompletionError(
                "OpenAI fallback unavailable: OPENAI_API_KEY/OPENROUTER_API_KEY not set",
                provider=self.name,
            )
        messages: list[dict[str, str]] = []
        if role_prompt:
            messages.append({"role": "system", "content": role_prompt})
        messages.append({"role": "user", "content": context_prompt})
        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": OPENAI_TEMPERATURE,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        try:
            with httpx.Client(timeout=_timeout(self._timeout_seconds), transport=self._transport) as client:
                response = client.post(f"{self._base_url}/chat/completions", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise CompletionError(f"OpenAI request failed: {exc}", provider=self.name) from exc

        if response.status_code >= 400:
            raise classify_failure(self._error_message(response), status=response.status_code, provider=self.name)

        try:
            body = response.json()
            text = body["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise CompletionError(f"Malformed completion response: {exc}", provider=self.name) from exc
        return CompletionResult(text=str(text), provider=self.name, model=self._model)


class FallbackProvider(CompletionProvider):
    """Try ``primary``; on an auth or availability failure use ``secondary``."""

    name = "auto"

    def __init__(self, primary: CompletionProvider, secondary: CompletionProvider) -> None:
        self.primary = primary
        self.secondary = secondary

    @property
    def model(self) -> str:
        return self.primary.model

    def complete(self, role_prompt: str, context_prompt: str, *, max_tokens: int) -> CompletionResult:
        try:
            return self.primary.complete(role_prompt, context_prompt, max_tokens=max_tokens)
        except CompletionError as exc:
            if not is_auth_or_availability(exc):
                raise
            logger.warning(
                "{} unavailable ({}); falling back to {}",
                self.primary.name,
                exc.message,
                self.secondary.name,
            )
        return self.secondary.complete(role_prompt, context_prompt, max_tokens=max_tokens)


def is_configured(settings: LLMSettings) -> bool:
    """Whether any provider credentials are available."""
    return settings.has_anthropic or settings.has_openai


def _anthropic(settings: LLMSettings) -> AnthropicProvider:
    return AnthropicProvider(
        settings.anthropic_api_key,
        model=settings.anthropic_model,
        timeout_seconds=settings.timeout_seconds,
    )


def _openai(settings: LLMSettings) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        timeout_seconds=settings.timeout_seconds,
    )


def build_provider(settings: LLMSettings) -> CompletionProvider:
    """Build the provider for the configured preference.

    ``auto`` prefers Anthropic and falls back to the OpenAI-compatible
    endpoint; when only one set of credentials exists it uses that one alone.
    """
    if settings.preferred == "anthropic":
        return _anthropic(settings)
    if settings.preferred == "openai":
        return _openai(settings)
    if settings.has_anthropic and settings.has_openai:
        return FallbackProvider(_anthropic(settings), _openai(settings))
    if settings.has_openai:
        return _openai(settings)
    return _anthropic(settings)


def probe(provider: CompletionProvider) -> dict[str, Any]:
    try:
        result = provider.complete("", "OK", max_tokens=8)
    except CompletionError as exc:
        return {"ok": False, "provider": provider.name, "message": exc.message or "failed"}
    return {"ok": True, "provider": result.provider, "model": result.model}


def check_health(settings: LLMSettings) -> dict[str, Any]:
    """Probe each provider with a tiny completion request."""
    return {
        "anthropic": probe(_anthropic(settings)),
        "openai": probe(_openai(settings)),
    }
