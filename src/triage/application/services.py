"""
Triage Application Services
============================

Application services for ticket analysis, conversation summaries and
draft replies.

Analysis and summaries return fixed fallbacks when the LLM call or its
parsing fails. Drafting lets `LLMException` propagate; its knowledge base
retrieval is best-effort and yields an empty context on failure.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from src.core import LLMException
from src.knowledge_base.domain import RetrievalResult
from src.shared.infrastructure.logging import get_logger
from src.triage.domain import (
    ConversationMessage,
    DraftReply,
    DraftPromptBuilder,
    SummaryPromptBuilder,
    TicketAnalysis,
    TicketAnalysisPromptBuilder,
)

logger = get_logger(__name__)

SUMMARY_FALLBACK = "Automatic summary unavailable."


# ========== Collaborator Interfaces ==========

class ILLMClient(ABC):
    """Chat completion port; the result exposes `content` and token counts."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str = "chat_completion"
    ) -> Any:
        ...


class IContextRetriever(ABC):
    """Interface for knowledge base retrieval."""

    @abstractmethod
    async def retrieve(self, query: str, top_k: Optional[int] = None) -> RetrievalResult:
        """Ranked passages for query; never raises for provider failures."""


def _extract_json(content: str) -> dict:
    """Parse a JSON object, tolerating markdown code fences around it."""
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0]
    elif "```" in content:
        content = content.split("```")[1].split("```")[0]
    return json.loads(content.strip())


# ========== Services ==========

class TicketAnalysisService:
    """
    Service for ticket analysis using LLM.

    Coordinates between the LLM client and the analysis prompt.
    """

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def analyze(self, message: str) -> TicketAnalysis:
        """
        Classify a customer message by category, sentiment and urgency.

        Returns TicketAnalysis.failed() if the LLM call or its JSON fails.
        """
        messages = [
            {"role": "system", "content": TicketAnalysisPromptBuilder.get_system_prompt()},
            {"role": "user", "content": TicketAnalysisPromptBuilder.build_prompt(message)}
        ]

        try:
            response = await self._llm.chat_completion(
                messages=messages,
                temperature=0.2,
                max_tokens=500,
                operation="ticket_analysis"
            )
            data = _extract_json(response.content)
            return TicketAnalysis(
                category=data.get("category", ""),
                sentiment=data.get("sentiment", ""),
                urgency_score=int(data.get("urgency_score", 0)),
                summary=str(data.get("summary", "")).strip()
            )
        except (LLMException, ValueError, TypeError, AttributeError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(
                "Ticket analysis failed; using fallback",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return TicketAnalysis.failed()


class ConversationSummaryService:
    """Service for summarizing ticket conversations."""

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def summarize(self, conversation: List[ConversationMessage]) -> str:
        """Summarize the conversation; returns SUMMARY_FALLBACK on failure."""
        if not conversation:
            return SUMMARY_FALLBACK

        messages = [
            {"role": "system", "content": SummaryPromptBuilder.get_system_prompt()},
            {"role": "user", "content": SummaryPromptBuilder.build_prompt(conversation)}
        ]

        try:
            response = await self._llm.chat_completion(
                messages=messages,
                temperature=0.3,
                max_tokens=500,
                operation="conversation_summary"
            )
        except LLMException as e:
            logger.warning("Conversation summary failed", extra={"error": str(e)})
            return SUMMARY_FALLBACK

        return response.content.strip() or SUMMARY_FALLBACK


class DraftComposer:
    """
    Service for knowledge-base-grounded reply drafts.

    Orchestrates retrieval and LLM generation.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        retriever: IContextRetriever,
        top_k: Optional[int] = None
    ):
        self._llm = llm_client
        self._retriever = retriever
        self._top_k = top_k

    async def compose(
        self,
        context_message: str,
        conversation: Optional[List[ConversationMessage]] = None
    ) -> DraftReply:
        """
        Draft a reply to context_message.

        Without retrieved passages the draft is still generated, and the
        prompt tells the model no knowledge base context was found.

        Raises:
            LLMException: If generation fails
        """
        start_time = time.perf_counter()

        context = await self._retriever.retrieve(context_message, self._top_k)
        passages = [chunk.text for chunk in context.relevant_chunks]
        passage_sources = [chunk.source for chunk in context.relevant_chunks]

        messages = [
            {"role": "system", "content": DraftPromptBuilder.get_system_prompt()},
            {"role": "user", "content": DraftPromptBuilder.build_prompt(
                context_message, passages, passage_sources, conversation or []
            )}
        ]

        response = await self._llm.chat_completion(
            messages=messages,
            temperature=0.4,
            max_tokens=1000,
            operation="draft_reply"
        )

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Draft reply generated",
            extra={
                "context_used": len(passages),
                "sources": len(context.source_documents),
                "latency_ms": latency_ms
            }
        )

        return DraftReply(
            draft=response.content.strip(),
            sources=list(context.source_documents),
            context_used=len(passages),
            latency_ms=latency_ms,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens
        )
