"""
LLM Client Infrastructure
==========================

Wrapper for OpenAI-compatible LLM providers providing a clean interface for
chat completions.

The triage agents depend on the ILLMClient abstraction, never on the SDK.
Any provider error is raised as LLMException so callers can fall back.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI

from helpdesk.config import Settings, settings as default_settings
from helpdesk.core import LLMException, ConfigurationException


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Only the methods the triage agents need are defined.
    """

    provider: str = "unknown"
    model: str = "unknown"

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation.

    Also serves OpenAI-compatible providers (Groq, local gateways) through
    the base_url setting.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self._api_key = api_key or default_settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key, base_url=base_url)
        self.model = model or default_settings.llm_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation label (classification, draft)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails or returns no content
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"{operation} completion failed: {e}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMException(f"{operation} completion returned no content")

        usage = response.usage
        return ChatCompletionResult(
            content=content,
            model=response.model or self.model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for testing.

    Returns predictable responses without calling external APIs.
    """

    provider = "mock"
    model = "mock-model"

    def __init__(self, category: str = "billing", confidence: float = 0.9):
        self._category = category
        self._confidence = confidence

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        if operation == "classification":
            content = "```json\n" + json.dumps({
                "category": self._category,
                "confidence": self._confidence
            }) + "\n```"
        elif operation == "draft":
            content = (
                "Thank you for reaching out. We have looked into your request and "
                "the linked articles should help.\n\nBest regards,\nSupport Team"
            )
        else:
            content = "This is a mock LLM response for testing purposes."

        return ChatCompletionResult(
            content=content,
            model=self.model,
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )


def create_llm_client(config: Optional[Settings] = None) -> ILLMClient:
    """
    Build the LLM client selected by settings.

    Raises:
        ConfigurationException: If a real provider is selected without an API key
    """
    config = config or default_settings
    if config.mock_llm:
        return MockLLMClient()
    return OpenAILLMClient(
        api_key=config.openai_api_key,
        model=config.llm_model,
        base_url=config.llm_base_url
    )
