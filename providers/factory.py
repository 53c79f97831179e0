"""Factory for creating LLM providers from config. No hardcoded model names."""

from __future__ import annotations

from core.exceptions import ConfigError
from core.interfaces import ILLMProvider
from providers.base import DEFAULT_TIMEOUT_SEC
from providers.github_provider import GitHubModelsProvider
from providers.ollama_provider import OllamaProvider
from providers.openai_provider import OpenAIProvider
from utils.config import LLMConfig


def create_provider(
    provider: str,
    *,
    base_url: str | None = None,
    api_key: str = "",
    model: str = "",
    timeout_sec: int = DEFAULT_TIMEOUT_SEC,
) -> ILLMProvider:
    """
    Create an LLM provider by name. All settings from config; easy to add new providers.
    """
    name = (provider or "github").strip().lower()
    if name in ("github", "github_models"):
        return GitHubModelsProvider(
            base_url=base_url,
            api_key=api_key,
            model=model or "gpt-4o",
            timeout_sec=timeout_sec,
        )
    if name in ("openai", "azure"):
        return OpenAIProvider(
            base_url=base_url,
            api_key=api_key,
            model=model or "gpt-4o",
            timeout_sec=timeout_sec,
        )
    if name == "ollama":
        return OllamaProvider(
            base_url=base_url,
            api_key=api_key,
            model=model or "llama3.2",
            timeout_sec=timeout_sec,
        )
    raise ConfigError(f"Unknown LLM provider: {provider}. Use github, openai, or ollama.")


def create_provider_from_config(llm: LLMConfig) -> ILLMProvider:
    return create_provider(
        llm.provider,
        base_url=llm.base_url or None,
        api_key=llm.api_key,
        model=llm.model,
        timeout_sec=llm.timeout_sec,
    )
