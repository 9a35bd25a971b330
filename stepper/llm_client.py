"""LLM client infrastructure used by the manual-function generator."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from . import constants

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Abstract base for LLM API clients."""

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int = constants.LLM_MAX_TOKENS,
        temperature: float = constants.LLM_TEMPERATURE,
    ) -> str:
        """Send a prompt to the LLM and return the raw text response."""
        ...


class _SDKBackedClient(LLMClient):
    """Holds the model name and a vendor SDK client built on first use.

    Passing ``client`` injects a pre-built SDK object (tests use fakes);
    otherwise the vendor package is imported only when a request is made.
    """

    default_model = ""

    def __init__(self, model: str = "", client: Any = None):
        self._model = model or self.default_model
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    @property
    def sdk(self) -> Any:
        if self._client is None:
            self._client = self._create_sdk_client()
        return self._client

    @abstractmethod
    def _create_sdk_client(self) -> Any: ...


class ClaudeLLMClient(_SDKBackedClient):
    """Anthropic Messages API backend."""

    default_model = constants.CLAUDE_DEFAULT_MODEL

    def _create_sdk_client(self) -> Any:
        import anthropic

        return anthropic.Anthropic()

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int = constants.LLM_MAX_TOKENS,
        temperature: float = constants.LLM_TEMPERATURE,
    ) -> str:
        logger.debug("Claude request: model=%s, max_tokens=%d", self._model, max_tokens)
        response = self.sdk.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        return "".join(getattr(block, "text", "") for block in response.content)


class OpenAILLMClient(_SDKBackedClient):
    """OpenAI Chat Completions backend."""

    default_model = constants.OPENAI_DEFAULT_MODEL

    def _create_sdk_client(self) -> Any:
        import openai

        return openai.OpenAI()

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int = constants.LLM_MAX_TOKENS,
        temperature: float = constants.LLM_TEMPERATURE,
    ) -> str:
        logger.debug("OpenAI request: model=%s, max_tokens=%d", self._model, max_tokens)
        response = self.sdk.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.choices[0].message.content or ""


_PROVIDERS: dict[str, type[_SDKBackedClient]] = {
    "claude": ClaudeLLMClient,
    "openai": OpenAILLMClient,
}


def get_llm_client(
    provider: str = "claude",
    model: str = "",
    client: Any = None,
) -> LLMClient:
    """Factory for LLM clients.

    Args:
        provider: "claude" or "openai"
        model: Model name override (empty string = use default)
        client: Pre-built SDK client for DI/testing
    """
    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown LLM provider: {provider}")
    return _PROVIDERS[provider](model=model, client=client)
