"""OpenAI (and Azure/OpenAI-compatible) HTTP provider."""

from __future__ import annotations

import logging
from typing import Any

from providers.base import DEFAULT_TIMEOUT_SEC, BaseLLMProvider

logger = logging.getLogger(__name__)
DEFAULT_OPENAI_BASE = "https://api.openai.com/v1"


class OpenAIProvider(BaseLLMProvider):
    """OpenAI API and OpenAI-compatible endpoints (Azure, etc.)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str = "",
        model: str = "gpt-4o",
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        super().__init__(base_url or DEFAULT_OPENAI_BASE, api_key, model, timeout_sec)

    def _extra_payload(self, **kwargs: Any) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        if kwargs.get("top_p") is not None:
            extra["top_p"] = kwargs["top_p"]
        return extra
