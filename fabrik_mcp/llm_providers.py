"""LLM provider abstractions for flexible model support."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.ai import generativelanguage as glm
import openai

from fabrik_mcp.config import Settings
from fabrik_mcp.exceptions import LLMQueryError
from fabrik_mcp.models import LLMResponse

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses implement a streaming and a single-shot completion; generate()
    prefers the stream and falls back to the single-shot call when it fails.
    """

    default_model: str

    @abstractmethod
    async def stream_completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """
        Generate a completion in streaming mode.

        Chunks are consumed incrementally and concatenated before returning.

        Args:
            system_prompt: System instruction for the model
            user_query: The user's message
            model: Model identifier to use

        Returns:
            Full generated text

        Raises:
            Exception: If the streaming call fails
        """
        pass

    @abstractmethod
    async def completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """Generate a completion with a single non-streaming call."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name for identification."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available for use."""
        pass

    async def generate(self, system_prompt: str, user_query: str, model: Optional[str] = None) -> LLMResponse:
        """
        Generate a response, streaming first and falling back to a single call.

        Raises:
            LLMQueryError: If the provider is unavailable or both modes fail
        """
        if not self.is_available():
            raise LLMQueryError(f"{self.name} provider is not configured")

        model_to_use = model or self.default_model

        try:
            text = await self.stream_completion(system_prompt, user_query, model_to_use)
            return LLMResponse(text=text, model=model_to_use, streamed=True)
        except Exception as e:
            logger.warning(f"{self.name} streaming failed, retrying without streaming: {e}")

        try:
            text = await self.completion(system_prompt, user_query, model_to_use)
        except Exception as e:
            logger.error(f"{self.name} API error: {e}")
            raise LLMQueryError(f"{self.name} request failed: {e}", cause=e) from e

        return LLMResponse(text=text, model=model_to_use, streamed=False)


class GeminiProvider(LLMProvider):
    """Google Gemini provider implementation."""

    def __init__(self, api_key: Optional[str], default_model: str = "gemini-2.5-pro", client: Any = None):
        """
        Initialize Gemini provider.

        The API key is bound to this provider's own async client rather than
        to the SDK's process-wide configuration.

        Args:
            api_key: Gemini API key
            default_model: Model used when generate() is not given one
            client: Preconstructed GenerativeServiceAsyncClient
        """
        self.api_key = api_key
        self.default_model = default_model
        self.client = client

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "gemini"

    def is_available(self) -> bool:
        """Check if a Gemini API key is configured."""
        return bool(self.api_key)

    def _async_client(self):
        # created lazily: the grpc_asyncio transport binds to the running loop
        if self.client is None:
            self.client = glm.GenerativeServiceAsyncClient(client_options={"api_key": self.api_key})
        return self.client

    def _model(self, model: str, system_prompt: str):
        generative_model = genai.GenerativeModel(model_name=model, system_instruction=system_prompt)
        generative_model._async_client = self._async_client()
        return generative_model

    async def stream_completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """Stream a Gemini completion and join the chunk texts."""
        response = await self._model(model, system_prompt).generate_content_async(user_query, stream=True)

        parts: List[str] = []
        async for chunk in response:
            if chunk.text:
                parts.append(chunk.text)
        return "".join(parts)

    async def completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """Generate a Gemini completion in one call."""
        response = await self._model(model, system_prompt).generate_content_async(user_query)
        return response.text


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, api_key: Optional[str], default_model: str = "gpt-4o-mini", client: Any = None):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            default_model: Model used when generate() is not given one
            client: Preconstructed AsyncOpenAI client
        """
        self.api_key = api_key
        self.default_model = default_model
        self.client = client
        if self.client is None and self.api_key:
            self.client = openai.AsyncOpenAI(api_key=self.api_key)

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API is available."""
        return self.client is not None

    @staticmethod
    def _messages(system_prompt: str, user_query: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_query},
        ]

    async def stream_completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """Stream a chat completion and join the content deltas."""
        stream = await self.client.chat.completions.create(
            model=model,
            messages=self._messages(system_prompt, user_query),
            stream=True,
        )

        parts: List[str] = []
        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                parts.append(chunk.choices[0].delta.content)
        return "".join(parts)

    async def completion(self, system_prompt: str, user_query: str, model: str) -> str:
        """Generate a chat completion in one call."""
        response = await self.client.chat.completions.create(
            model=model,
            messages=self._messages(system_prompt, user_query),
        )
        return (response.choices[0].message.content or "").strip()


def get_llm_provider(settings: Settings) -> Optional[LLMProvider]:
    """
    Build the configured LLM provider.

    Returns None when the selected provider has no credentials, so the server
    still starts and only the LLM-backed tool reports the problem.

    Raises:
        ValueError: If LLM_PROVIDER names an unknown provider
    """
    provider_name = settings.llm_provider

    if provider_name == "gemini":
        provider: LLMProvider = GeminiProvider(settings.gemini_api_key, settings.gemini_model)
    elif provider_name == "openai":
        provider = OpenAIProvider(settings.openai_api_key, settings.openai_model)
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")

    if not provider.is_available():
        logger.warning(
            f"{provider.name} provider selected but no API key configured; "
            "gemini_with_config will be unavailable"
        )
        return None

    logger.info(f"Using {provider.name} provider with model {provider.default_model}")
    return provider
