"""LLM providers: abstract base and concrete implementations."""

from providers.base import BaseLLMProvider
from providers.github_provider import GitHubModelsProvider
from providers.openai_provider import OpenAIProvider
from providers.ollama_provider import OllamaProvider
from providers.factory import create_provider, create_provider_from_config

__all__ = [
    "BaseLLMProvider",
    "GitHubModelsProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "create_provider",
    "create_provider_from_config",
]
