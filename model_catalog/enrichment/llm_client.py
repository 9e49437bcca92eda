"""
LLM Client - Abstraction over text-generation providers.

Backends:
- VertexLLMClient: Gemini on Vertex AI ("google" provider)
- OpenAICompatibleClient: OpenAI, Perplexity, DeepSeek, OpenRouter, Cohere
  compatibility endpoint, Ollama (all speak the chat-completions format)
- AnthropicLLMClient: Anthropic messages API
- MockLLMClient: Tests and dry runs

Every backend turns its vendor's response shape into plain text. Callers only
ever see `await client.complete(system_prompt, user_prompt, cancel_token)`.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

from model_catalog import config
from model_catalog.enrichment.providers import (
    DEFAULT_BASE_URLS,
    DEFAULT_MODELS,
    ProviderConfig,
)

if TYPE_CHECKING:
    from model_catalog.validation.models import CancellationToken

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 16384
TEMPERATURE = 0.1


class LLMClient(ABC):
    """
    Abstract LLM client interface.

    Subclasses implement _generate(); complete() adds cancellation so an
    in-flight request is aborted as soon as the token is cancelled.
    """

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> str:
        """
        Generate a completion.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The request itself
            cancel_token: Aborts the request when cancelled

        Returns:
            Generated text (may be empty)

        Raises:
            ValidationCancelled: if cancel_token was cancelled
        """
        if cancel_token is None:
            return await self._generate(system_prompt, user_prompt)
        return await cancel_token.run(self._generate(system_prompt, user_prompt))

    @abstractmethod
    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name that would be used."""
        pass


class VertexLLMClient(LLMClient):
    """Gemini via Vertex AI."""

    def __init__(
        self,
        model: Optional[str] = None,
        project_id: Optional[str] = None,
        location: str = "us-central1",
    ):
        self.model = model or DEFAULT_MODELS["google"]
        self.project_id = project_id or os.environ.get("GOOGLE_CLOUD_PROJECT")
        self.location = location
        self._initialized = False

    def _ensure_initialized(self) -> None:
        """Lazy initialization of Vertex AI."""
        if self._initialized:
            return

        try:
            import vertexai
            vertexai.init(project=self.project_id, location=self.location)
            self._initialized = True
            logger.info("Vertex AI initialized: project=%s, location=%s",
                        self.project_id, self.location)
        except Exception as e:
            logger.error("Failed to initialize Vertex AI: %s", e)
            raise

    def get_model_name(self) -> str:
        return self.model

    @staticmethod
    def _collect_text(response: Any) -> str:
        # Thinking models may return several text parts; the last is the answer.
        candidates = getattr(response, "candidates", None) or []
        if candidates:
            content = getattr(candidates[0], "content", None)
            parts = getattr(content, "parts", None) or []
            texts = [p.text for p in parts if getattr(p, "text", None)]
            if len(texts) > 1:
                logger.debug("Response has %d text parts", len(texts))
                return texts[-1].strip()
        return (response.text or "").strip()

    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        self._ensure_initialized()

        from vertexai.generative_models import GenerationConfig, GenerativeModel

        model = GenerativeModel(self.model, system_instruction=system_prompt)
        generation_config = GenerationConfig(
            temperature=TEMPERATURE,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )

        try:
            response = await model.generate_content_async(
                user_prompt,
                generation_config=generation_config,
            )
        except Exception as e:
            logger.error("Vertex completion failed: %s", e)
            raise

        result = self._collect_text(response)
        logger.debug("LLM response length: %d chars", len(result))
        return result


class OpenAICompatibleClient(LLMClient):
    """Any provider that speaks the OpenAI chat-completions format."""

    def __init__(self, provider_key: str, provider_config: ProviderConfig):
        from openai import AsyncOpenAI

        self.provider_key = provider_key
        self.model = provider_config.model or DEFAULT_MODELS.get(provider_key, DEFAULT_MODELS["openai"])

        base_url = provider_config.base_url or DEFAULT_BASE_URLS.get(provider_key)
        if provider_config.protocol == "ollama" and not provider_config.base_url:
            base_url = DEFAULT_BASE_URLS["ollama"]

        # Ollama ignores the key but the client requires one.
        api_key = provider_config.api_key or "ollama"
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    def get_model_name(self) -> str:
        return self.model

    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=TEMPERATURE,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()


class AnthropicLLMClient(LLMClient):
    """Anthropic messages API."""

    def __init__(self, provider_config: ProviderConfig):
        from anthropic import AsyncAnthropic

        self.model = provider_config.model or DEFAULT_MODELS["anthropic"]
        kwargs = {"api_key": provider_config.api_key}
        if provider_config.base_url:
            kwargs["base_url"] = provider_config.base_url
        self._client = AsyncAnthropic(**kwargs)

    def get_model_name(self) -> str:
        return self.model

    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=8192,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        texts = [block.text for block in response.content if block.type == "text"]
        return "\n".join(texts).strip()


MockReply = Union[str, BaseException, Callable[[str, str], str]]


class MockLLMClient(LLMClient):
    """
    Mock LLM client for tests and dry runs.

    Replies are consumed in order; each may be a string, an exception to
    raise, or a callable(system_prompt, user_prompt) returning the text.
    Once the script runs out, default_response is returned.
    """

    def __init__(
        self,
        responses: Optional[Sequence[MockReply]] = None,
        default_response: str = "",
        delay: float = 0.0,
    ):
        self.responses: List[MockReply] = list(responses or [])
        self.default_response = default_response
        self.delay = delay
        self.call_count = 0
        self.prompts: List[str] = []
        self.last_prompt: Optional[str] = None

    def get_model_name(self) -> str:
        return "mock-model"

    async def _generate(self, system_prompt: str, user_prompt: str) -> str:
        self.call_count += 1
        self.last_prompt = user_prompt
        self.prompts.append(user_prompt)

        if self.delay:
            await asyncio.sleep(self.delay)

        reply: MockReply = self.responses.pop(0) if self.responses else self.default_response
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(system_prompt, user_prompt)
        return reply


def get_llm_client(
    provider_key: Optional[str] = None,
    provider_config: Optional[ProviderConfig] = None,
    use_mock: bool = False,
) -> LLMClient:
    """
    Factory function to get the client for a provider.

    Args:
        provider_key: Provider name from the settings map ("openai", ...)
        provider_config: That provider's settings
        use_mock: If True (or USE_MOCK_LLM is set), return MockLLMClient

    Returns:
        LLMClient instance
    """
    if use_mock or config.USE_MOCK_LLM:
        logger.info("Using MockLLMClient")
        return MockLLMClient()

    provider_config = provider_config or ProviderConfig(enabled=True)

    if provider_key in (None, "google", "vertex"):
        logger.info("Using VertexLLMClient")
        return VertexLLMClient(model=provider_config.model)

    if provider_key == "anthropic":
        logger.info("Using AnthropicLLMClient")
        return AnthropicLLMClient(provider_config)

    if (
        provider_key in DEFAULT_BASE_URLS
        or provider_config.base_url
        or provider_config.protocol in ("openai", "ollama")
    ):
        logger.info("Using OpenAICompatibleClient for %s", provider_key)
        return OpenAICompatibleClient(provider_key, provider_config)

    raise ValueError(f"Unsupported provider: {provider_key}")


__all__ = [
    "LLMClient",
    "VertexLLMClient",
    "OpenAICompatibleClient",
    "AnthropicLLMClient",
    "MockLLMClient",
    "get_llm_client",
]
