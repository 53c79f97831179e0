"""GitHub Models (Azure inference) provider: OpenAI-compatible, bearer-token auth."""

from __future__ import annotations

from providers.base import DEFAULT_TIMEOUT_SEC
from providers.openai_provider import OpenAIProvider

DEFAULT_GITHUB_MODELS_BASE = "https://models.inference.ai.azure.com"


class GitHubModelsProvider(OpenAIProvider):
    """Same contract as OpenAI chat/completions; the API key is a GitHub token."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str = "",
        model: str = "gpt-4o",
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        super().__init__(base_url or DEFAULT_GITHUB_MODELS_BASE, api_key, model, timeout_sec)
