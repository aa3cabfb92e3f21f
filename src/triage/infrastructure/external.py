"""
Triage Adapters
===============

Binds the triage ports to the shared LLM client and to the knowledge base
service.
"""

from typing import Any, List, Optional

from src.infrastructure.llm import ILLMClient as InfrastructureLLMClient
from src.knowledge_base.application import KnowledgeBaseService
from src.knowledge_base.domain import RetrievalResult
from src.triage.application import IContextRetriever, ILLMClient


class LLMClientAdapter(ILLMClient):
    """Forwards triage completions to the configured provider client."""

    def __init__(self, client: InfrastructureLLMClient):
        self._client = client

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> Any:
        return await self._client.chat_completion(messages, temperature, max_tokens, operation)


class KnowledgeBaseRetriever(IContextRetriever):
    """Draft context comes straight from `KnowledgeBaseService.retrieve`."""

    def __init__(self, service: KnowledgeBaseService):
        self._service = service

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> RetrievalResult:
        return await self._service.retrieve(query, top_k)
