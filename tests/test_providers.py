"""Tests for the HTTP LLM providers and the provider factory. requests.post is mocked."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import ConfigError, StructuredOutputError
from providers.factory import create_provider, create_provider_from_config
from providers.github_provider import DEFAULT_GITHUB_MODELS_BASE, GitHubModelsProvider
from providers.ollama_provider import DEFAULT_OLLAMA_BASE, OllamaProvider
from providers.openai_provider import OpenAIProvider
from utils.config import LLMConfig


@pytest.fixture
def post(monkeypatch) -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"choices": [{"message": {"content": "  {\"ok\": true}  "}}]}
    response.raise_for_status.return_value = None
    mock_post = MagicMock(return_value=response)
    monkeypatch.setattr("providers.base.requests.post", mock_post)
    return mock_post


def test_chat_posts_openai_payload(post: MagicMock) -> None:
    provider = GitHubModelsProvider(api_key="tok", model="gpt-4o", timeout_sec=12)
    content = provider.chat([{"role": "user", "content": "hi"}], temperature=0.1, max_tokens=500, top_p=0.9)
    assert content == '{"ok": true}'
    args, kwargs = post.call_args
    assert args[0] == f"{DEFAULT_GITHUB_MODELS_BASE}/chat/completions"
    assert kwargs["json"] == {
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "hi"}],
        "max_tokens": 500,
        "stream": False,
        "temperature": 0.1,
        "top_p": 0.9,
    }
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["timeout"] == 12


def test_no_auth_header_without_key(post: MagicMock) -> None:
    OllamaProvider().chat([{"role": "user", "content": "hi"}])
    args, kwargs = post.call_args
    assert args[0] == f"{DEFAULT_OLLAMA_BASE}/chat/completions"
    assert "Authorization" not in kwargs["headers"]
    assert kwargs["json"]["model"] == "llama3.2"


def test_generate_wraps_prompt(post: MagicMock) -> None:
    response = OpenAIProvider(base_url="http://llm.local/v1/", model="m1").generate("ping")
    assert response.text == '{"ok": true}'
    assert response.model == "m1"
    assert post.call_args[0][0] == "http://llm.local/v1/chat/completions"


def test_http_errors_propagate(post: MagicMock) -> None:
    error_response = requests.Response()
    error_response.status_code = 429
    post.return_value.raise_for_status.side_effect = requests.HTTPError("429", response=error_response)
    with pytest.raises(requests.HTTPError):
        OpenAIProvider().chat([{"role": "user", "content": "hi"}])


def test_empty_choices_returns_empty_string(post: MagicMock) -> None:
    post.return_value.json.return_value = {"choices": []}
    assert OpenAIProvider().chat([]) == ""


@pytest.mark.parametrize(
    "name,cls",
    [
        ("github", GitHubModelsProvider),
        ("GitHub_Models", GitHubModelsProvider),
        ("openai", OpenAIProvider),
        ("azure", OpenAIProvider),
        ("ollama", OllamaProvider),
    ],
)
def test_factory_names(name: str, cls: type) -> None:
    assert type(create_provider(name)) is cls


def test_factory_unknown_provider() -> None:
    with pytest.raises(ConfigError):
        create_provider("watsonx")


def test_factory_from_config_uses_provider_default_url(post: MagicMock) -> None:
    provider = create_provider_from_config(LLMConfig(provider="ollama", model="qwen2.5"))
    provider.chat([])
    assert post.call_args[0][0] == f"{DEFAULT_OLLAMA_BASE}/chat/completions"
    assert post.call_args[1]["json"]["model"] == "qwen2.5"


@pytest.mark.parametrize(
    "body",
    [
        [],
        "not an object",
        {"choices": [None]},
        {"choices": {"message": {"content": "x"}}},
        {"choices": [{"message": "x"}]},
        {"choices": [{"message": {"content": ["a"]}}]},
    ],
)
def test_malformed_body_raises_structured_output_error(post: MagicMock, body) -> None:
    post.return_value.json.return_value = body
    with pytest.raises(StructuredOutputError):
        OpenAIProvider().chat([{"role": "user", "content": "hi"}])
