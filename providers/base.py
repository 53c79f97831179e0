"""
Abstract base for all LLM providers.
Pipeline depends only on this interface; no concrete provider imports in services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import requests

from core.exceptions import StructuredOutputError
from core.interfaces import ILLMProvider
from core.models import LLMResponse

DEFAULT_TIMEOUT_SEC = 30


class BaseLLMProvider(ILLMProvider, ABC):
    """
    OpenAI-compatible /chat/completions over requests. Subclasses set defaults and may
    add payload keys via _extra_payload(). HTTP errors propagate as requests exceptions;
    a 200 body without a string choices[0].message.content raises StructuredOutputError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "",
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or ""
        self._model = model
        self._timeout = timeout_sec

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            h["Authorization"] = f"Bearer {self._api_key}"
        return h

    @abstractmethod
    def _extra_payload(self, **kwargs: Any) -> dict[str, Any]:
        """Provider-specific request keys."""
        ...

    def generate(self, prompt: str, **kwargs: Any) -> LLMResponse:
        model = kwargs.pop("model", None) or self._model
        messages = [{"role": "user", "content": prompt}]
        text = self.chat(messages, model=model, **kwargs)
        return LLMResponse(text=text, model=model)

    def chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> str:
        url = f"{self._base_url}/chat/completions"
        payload: dict[str, Any] = {
            "model": kwargs.get("model") or self._model,
            "messages": messages,
            "max_tokens": kwargs.get("max_tokens", 2000),
            "stream": False,
        }
        if kwargs.get("temperature") is not None:
            payload["temperature"] = kwargs["temperature"]
        payload.update(self._extra_payload(**kwargs))
        resp = requests.post(
            url, json=payload, headers=self._headers(), timeout=self._timeout
        )
        resp.raise_for_status()
        return _message_content(resp.json())


def _message_content(data: Any) -> str:
    """choices[0].message.content of a chat-completion body; malformed bodies raise StructuredOutputError."""
    if not isinstance(data, dict):
        raise StructuredOutputError(f"Chat completion body is {type(data).__name__}, expected object")
    choices = data.get("choices") or [{}]
    choice = choices[0] if isinstance(choices, list) else None
    if not isinstance(choice, dict):
        raise StructuredOutputError("Chat completion has no usable choices")
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise StructuredOutputError("Chat completion choice has no message object")
    content = message.get("content") or ""
    if not isinstance(content, str):
        raise StructuredOutputError(f"Message content is {type(content).__name__}, expected string")
    return content.strip()
