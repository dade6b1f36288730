"""
Chat client for the conversation session.

Supports OpenAI and TogetherAI (OpenAI-compatible) providers with
thread-safe lazy initialization, blocking and streaming completions.
"""

import logging
import os
import threading
from typing import Dict, Iterator, Optional, Sequence, Union

from wexly.core.models import ChatMessage
from wexly.utils.errors import ChatCompletionError, ModelLoadError


DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "togetherai": "meta-llama/Llama-3.3-70B-Instruct-Turbo",
}

PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "openai": None,  # OpenAI SDK uses default
    "togetherai": "https://api.together.xyz/v1",
}

Message = Union[ChatMessage, Dict[str, str]]


class LLMClient:
    """
    Shared, thread-safe, lazy-initialized OpenAI-compatible chat client.

    The SDK client is created on first use and reused across calls, so
    the session's worker threads can share one instance.
    """

    def __init__(
        self,
        provider: str = "openai",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        self.provider = provider.lower()
        self.model = model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])
        self.default_temperature = temperature
        self.default_max_tokens = max_tokens
        self._api_key = self._resolve_api_key(api_key)
        self._client = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger("llm.client")

    @property
    def model_id(self) -> str:
        """Provider/model identifier string."""
        return f"{self.provider}/{self.model}"

    @property
    def client(self):
        """Thread-safe lazy-initialized OpenAI client."""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send a single-turn chat completion request.

        Returns:
            The assistant's response text.

        Raises:
            ChatCompletionError: If the API call fails.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature if temperature is not None else self.default_temperature,
                max_tokens=max_tokens or self.default_max_tokens,
            )
            return response.choices[0].message.content or ""
        except ModelLoadError as e:
            raise ChatCompletionError(str(e), model_id=self.model_id, original_error=e) from e
        except Exception as e:
            raise ChatCompletionError(
                f"Chat completion failed: {e}",
                model_id=self.model_id,
                original_error=e,
            ) from e

    def chat_stream(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Iterator[str]:
        """
        Stream a completion over a conversation window.

        Args:
            system_prompt: System role message.
            messages: Conversation turns, oldest first, ending with the
                new user prompt.

        Yields:
            Non-empty text deltas in arrival order. The iterator ends when
            the completion is finished.

        Raises:
            ChatCompletionError: If the request or the stream fails.
        """
        payload = [{"role": "system", "content": system_prompt}]
        payload.extend(_as_dict(m) for m in messages)
        self.logger.debug(f"Streaming from {self.model_id} with {len(payload)} messages")

        try:
            stream = self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=temperature if temperature is not None else self.default_temperature,
                max_tokens=max_tokens or self.default_max_tokens,
                stream=True,
            )
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except ModelLoadError as e:
            raise ChatCompletionError(str(e), model_id=self.model_id, original_error=e) from e
        except Exception as e:
            raise ChatCompletionError(
                f"Chat stream failed: {e}",
                model_id=self.model_id,
                original_error=e,
            ) from e

    def _resolve_api_key(self, api_key: Optional[str]) -> Optional[str]:
        """Resolve API key from parameter, template, or environment."""
        if api_key:
            if api_key.startswith("${") and api_key.endswith("}"):
                return os.environ.get(api_key[2:-1])
            return api_key

        if self.provider == "togetherai":
            return os.environ.get("TOGETHER_API_KEY") or os.environ.get(
                "TOGETHERAI_API_KEY"
            )
        elif self.provider == "openai":
            return os.environ.get("OPENAI_API_KEY")
        return None

    def _create_client(self):
        """Create the OpenAI-compatible client for the configured provider."""
        if not self._api_key:
            env_vars = (
                "TOGETHER_API_KEY or TOGETHERAI_API_KEY"
                if self.provider == "togetherai"
                else "OPENAI_API_KEY"
            )
            raise ModelLoadError(
                f"No API key found for {self.provider}. Set {env_vars} environment variable.",
                model_name=self.provider,
            )

        from openai import OpenAI

        base_url = PROVIDER_BASE_URLS.get(self.provider)
        if base_url:
            return OpenAI(api_key=self._api_key, base_url=base_url)
        return OpenAI(api_key=self._api_key)


def _as_dict(message: Message) -> Dict[str, str]:
    if isinstance(message, ChatMessage):
        return {"role": message.role, "content": message.content}
    return {"role": message["role"], "content": message["content"]}


def create_llm_client(config: Dict) -> LLMClient:
    """
    Factory function to create LLMClient from config dict.

    Args:
        config: The 'llm' section from config.yaml.
    """
    return LLMClient(
        provider=config.get("provider", "openai"),
        model=config.get("model"),
        api_key=config.get("api_key"),
        temperature=config.get("temperature", 0.7),
        max_tokens=config.get("max_tokens", 500),
    )
