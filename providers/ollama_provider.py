"""Ollama (local) OpenAI-compatible API provider."""

from __future__ import annotations

import logging
from typing import Any

from providers.base import DEFAULT_TIMEOUT_SEC, BaseLLMProvider

logger = logging.getLogger(__name__)
DEFAULT_OLLAMA_BASE = "http://localhost:11434/v1"


class OllamaProvider(BaseLLMProvider):
    """Ollama local server; same HTTP contract as OpenAI chat/completions."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str = "",
        model: str = "llama3.2",
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        super().__init__(base_url or DEFAULT_OLLAMA_BASE, api_key, model, timeout_sec)

    def _extra_payload(self, **kwargs: Any) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        if kwargs.get("top_p") is not None:
            extra["top_p"] = kwargs["top_p"]
        # JSON mode keeps local models from wrapping the object in prose
        if kwargs.get("response_format") is not None:
            extra["response_format"] = kwargs["response_format"]
        return extra
