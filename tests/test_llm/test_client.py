"""Tests for LLMClient."""

import os
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from wexly.core.models import ChatMessage
from wexly.llm.client import DEFAULT_MODELS, LLMClient, create_llm_client
from wexly.utils.errors import ChatCompletionError


def _stream_chunk(content):
    delta = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def client():
    client = LLMClient(provider="openai", api_key="test-key")
    client._client = MagicMock()
    return client


class TestLLMClientInit:
    def test_default_provider(self):
        client = LLMClient(api_key="test-key")
        assert client.provider == "openai"
        assert client.model == DEFAULT_MODELS["openai"]

    def test_togetherai_provider(self):
        client = LLMClient(provider="TogetherAI", api_key="test-key")
        assert client.provider == "togetherai"
        assert client.model == DEFAULT_MODELS["togetherai"]

    def test_custom_model(self):
        client = LLMClient(model="gpt-4o", api_key="test-key")
        assert client.model == "gpt-4o"

    def test_model_id_property(self):
        client = LLMClient(api_key="test-key")
        assert client.model_id == f"openai/{DEFAULT_MODELS['openai']}"


class TestLLMClientAPIKeyResolution:
    def test_direct_api_key(self):
        client = LLMClient(api_key="direct-key")
        assert client._api_key == "direct-key"

    def test_template_api_key(self):
        with patch.dict(os.environ, {"MY_KEY": "resolved-key"}):
            client = LLMClient(api_key="${MY_KEY}")
            assert client._api_key == "resolved-key"

    def test_env_togetherai_key(self):
        with patch.dict(os.environ, {"TOGETHER_API_KEY": "env-key"}, clear=False):
            client = LLMClient(provider="togetherai")
            assert client._api_key == "env-key"

    def test_env_openai_key(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "oai-key"}, clear=False):
            client = LLMClient(provider="openai")
            assert client._api_key == "oai-key"

    def test_missing_key_fails_on_first_call(self):
        with patch.dict(os.environ, {}, clear=True):
            client = LLMClient(provider="openai")
            with pytest.raises(ChatCompletionError, match="OPENAI_API_KEY"):
                client.chat("system", "hi")


class TestChat:
    def test_returns_content(self, client):
        client._client.chat.completions.create.return_value = _completion("Hello!")

        assert client.chat("system", "hi") == "Hello!"

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == DEFAULT_MODELS["openai"]
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 500

    def test_overrides(self, client):
        client._client.chat.completions.create.return_value = _completion("ok")
        client.chat("system", "hi", temperature=0.0, max_tokens=50)

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 50

    def test_none_content_is_empty(self, client):
        client._client.chat.completions.create.return_value = _completion(None)
        assert client.chat("system", "hi") == ""

    def test_api_error_wrapped(self, client):
        client._client.chat.completions.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ChatCompletionError, match="rate limited") as exc_info:
            client.chat("system", "hi")
        assert exc_info.value.model_id == client.model_id


class TestChatStream:
    def test_yields_non_empty_deltas(self, client):
        client._client.chat.completions.create.return_value = iter([
            _stream_chunk("Hel"),
            SimpleNamespace(choices=[]),
            _stream_chunk(None),
            _stream_chunk(""),
            _stream_chunk("lo"),
        ])

        assert list(client.chat_stream("system", [{"role": "user", "content": "hi"}])) == ["Hel", "lo"]

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True

    def test_accepts_chat_messages(self, client):
        client._client.chat.completions.create.return_value = iter([])
        history = [
            ChatMessage(role="user", content="first"),
            {"role": "assistant", "content": "second"},
        ]

        list(client.chat_stream("system", history))

        messages = client._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "second"},
        ]

    def test_broken_stream_wrapped(self, client):
        def broken():
            yield _stream_chunk("par")
            raise ConnectionError("reset")

        client._client.chat.completions.create.return_value = broken()
        received = []

        with pytest.raises(ChatCompletionError, match="reset"):
            for delta in client.chat_stream("system", []):
                received.append(delta)
        assert received == ["par"]


class TestCreateLLMClient:
    def test_factory_creates_client(self):
        config = {"provider": "openai", "api_key": "factory-key", "temperature": 0.5}
        client = create_llm_client(config)
        assert isinstance(client, LLMClient)
        assert client.provider == "openai"
        assert client.default_temperature == 0.5

    def test_factory_defaults(self):
        client = create_llm_client({"api_key": "k"})
        assert client.model == DEFAULT_MODELS["openai"]
        assert client.default_max_tokens == 500
