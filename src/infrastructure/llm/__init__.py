"""
LLM Client Infrastructure
==========================

Provider clients used for two things: turning knowledge base text into
embedding vectors, and producing chat completions for ticket triage.

Z.AI and OpenAI expose the same OpenAI-style request shape, so both share
one request path in `_SDKClient`; they differ only in how a call is
dispatched. `MockLLMClient` needs no network and is what tests and local
runs use.
"""

import asyncio
import hashlib
import json
import math
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from openai import AsyncOpenAI
from zai import ZaiClient

from src.config import settings, Settings, LLMProvider
from src.core import LLMException, EmbeddingException, ConfigurationException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EmbeddingResult:
    embedding: List[float]
    model: str

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass
class ChatCompletionResult:
    """Completion text plus token usage and wall-clock latency."""

    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: int = 0
    total_tokens: int = field(init=False)

    def __post_init__(self):
        self.total_tokens = self.prompt_tokens + self.completion_tokens


class ILLMClient(ABC):
    """Embedding and chat operations consumed by the knowledge base and triage."""

    provider: str = "unknown"

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        ...

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        ...


class _SDKClient(ILLMClient):
    """
    Shared request path for SDK-backed providers.

    Subclasses set `provider`, build `self._client` and implement `_call`,
    which dispatches an SDK method and returns its raw response.
    """

    api_key_field: str = ""

    def __init__(self, config: Optional[Settings] = None, api_key: Optional[str] = None):
        config = config or settings
        key = api_key or getattr(config, self.api_key_field, None)
        if not key:
            raise ConfigurationException(
                f"{self.provider} API key not configured",
                details={"setting": self.api_key_field.upper()}
            )
        self._chat_model = config.llm_model
        self._embedding_model = config.embedding_model
        self._client = self._connect(key)

    @abstractmethod
    def _connect(self, api_key: str) -> Any:
        ...

    @abstractmethod
    async def _call(self, method, **kwargs) -> Any:
        ...

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        try:
            response = await self._call(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=text
            )
        except Exception as e:
            raise EmbeddingException(
                f"{self.provider} embedding request failed: {e}",
                details={"model": self._embedding_model}
            )
        return EmbeddingResult(list(response.data[0].embedding), self._embedding_model)

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Send messages to the configured chat model.

        `operation` only labels the log line (ticket_analysis,
        conversation_summary, draft_reply).

        Raises:
            LLMException: If the provider call fails
        """
        started = time.perf_counter()
        try:
            response = await self._call(
                self._client.chat.completions.create,
                model=self._chat_model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(
                f"{self.provider} completion failed: {e}",
                details={"operation": operation, "model": self._chat_model}
            )

        usage = getattr(response, "usage", None)
        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=self._chat_model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency_ms=int((time.perf_counter() - started) * 1000)
        )
        logger.info(
            "LLM completion finished",
            extra={
                "provider": self.provider,
                "model": result.model,
                "operation": operation,
                "prompt_tokens": result.prompt_tokens,
                "completion_tokens": result.completion_tokens,
                "latency_ms": result.latency_ms
            }
        )
        return result


class ZAIILLMClient(_SDKClient):
    """
    Z.AI (GLM) client.

    ZaiClient is blocking, so each call goes to a worker thread and
    concurrent chunk embeddings do not stall the event loop.
    """

    provider = LLMProvider.ZAI
    api_key_field = "zai_api_key"

    def _connect(self, api_key: str) -> ZaiClient:
        return ZaiClient(api_key=api_key)

    async def _call(self, method, **kwargs):
        return await asyncio.to_thread(method, **kwargs)


class OpenAILLMClient(_SDKClient):
    provider = LLMProvider.OPENAI
    api_key_field = "openai_api_key"

    def _connect(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def _call(self, method, **kwargs):
        return await method(**kwargs)


_MOCK_REPLIES = {
    "ticket_analysis": "```json\n" + json.dumps({
        "category": "Technical Issue",
        "sentiment": "Negative",
        "urgency_score": 7,
        "summary": "Mock: customer reports an error during checkout."
    }, indent=2) + "\n```",
    "conversation_summary": "Mock: the customer reported a problem and the agent is following up.",
    "draft_reply": (
        "Thank you for reaching out. Based on our documentation, "
        "please follow the steps described in the guide [1]."
    ),
}


class MockLLMClient(ILLMClient):
    """
    Offline client with canned completions per operation.

    Embeddings are unit vectors drawn from a PRNG seeded with the SHA-256 of
    the text: equal text maps to an equal vector, so a query identical to a
    stored chunk scores a cosine similarity of 1.
    """

    provider = LLMProvider.MOCK

    def __init__(self, dimension: Optional[int] = None):
        self._dimension = dimension or settings.embedding_dimension

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        rng = random.Random(int(digest[:8], 16))
        raw = [rng.uniform(-1, 1) for _ in range(self._dimension)]
        length = math.sqrt(sum(x * x for x in raw)) or 1.0
        return EmbeddingResult([x / length for x in raw], "mock-embedding")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        reply = _MOCK_REPLIES.get(operation, "Mock response.")
        return ChatCompletionResult(
            content=reply,
            model="mock-model",
            prompt_tokens=sum(len(str(m.get("content", "")).split()) for m in messages),
            completion_tokens=len(reply.split())
        )


def create_llm_client(config: Optional[Settings] = None) -> ILLMClient:
    """
    Build the LLM client selected by configuration.

    Raises:
        ConfigurationException: If the selected provider has no API key
    """
    config = config or settings
    if config.mock_llm or config.llm_provider == LLMProvider.MOCK:
        return MockLLMClient(config.embedding_dimension)
    if config.llm_provider == LLMProvider.OPENAI:
        return OpenAILLMClient(config)
    return ZAIILLMClient(config)
