"""Tests for ticket analysis, conversation summaries and draft replies."""

from typing import List, Optional

import pytest

from src.core import LLMException
from src.infrastructure.llm import ChatCompletionResult, MockLLMClient
from src.knowledge_base.domain import RetrievalResult, RetrievedChunk
from src.triage.application import (
    ConversationSummaryService,
    DraftComposer,
    IContextRetriever,
    ILLMClient,
    SUMMARY_FALLBACK,
    TicketAnalysisService,
)
from src.triage.domain import ConversationMessage, TicketAnalysis, format_conversation
from src.triage.infrastructure import KnowledgeBaseRetriever, LLMClientAdapter


class ScriptedLLM(ILLMClient):
    """Returns canned content, or raises, and keeps the prompts it saw."""

    def __init__(self, content: str = "", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[dict] = []

    async def chat_completion(self, messages, temperature, max_tokens, operation="chat_completion"):
        self.calls.append({"messages": messages, "operation": operation})
        if self.error:
            raise self.error
        return ChatCompletionResult(
            content=self.content,
            model="scripted",
            prompt_tokens=10,
            completion_tokens=5,
            latency_ms=1
        )


class FixedRetriever(IContextRetriever):
    def __init__(self, result: RetrievalResult):
        self.result = result
        self.queries: List[tuple] = []

    async def retrieve(self, query, top_k=None):
        self.queries.append((query, top_k))
        return self.result


CONVERSATION = [
    ConversationMessage(sender="customer", message="I was charged twice."),
    ConversationMessage(sender="agent", message="Let me check the invoice."),
]


# ========== Analysis ==========

@pytest.mark.asyncio
async def test_analyze_parses_fenced_json():
    service = TicketAnalysisService(LLMClientAdapter(MockLLMClient(8)))

    result = await service.analyze("The checkout page throws a 500 error every time.")

    assert result.category == "Technical Issue"
    assert result.sentiment == "Negative"
    assert result.urgency_score == 7
    assert not result.fallback


@pytest.mark.asyncio
async def test_analyze_parses_bare_json():
    llm = ScriptedLLM('{"category": "Billing Issue", "sentiment": "Neutral", "urgency_score": "4", "summary": " Double charge. "}')

    result = await TicketAnalysisService(llm).analyze("I was charged twice for order 1182.")

    assert result.category == "Billing Issue"
    assert result.urgency_score == 4
    assert result.summary == "Double charge."
    assert llm.calls[0]["operation"] == "ticket_analysis"


@pytest.mark.parametrize(
    "llm",
    [
        ScriptedLLM(error=LLMException("timeout")),
        ScriptedLLM("not json at all"),
        ScriptedLLM('{"category": "Weather", "sentiment": "Neutral", "urgency_score": 3, "summary": "x"}'),
        ScriptedLLM('{"category": "Other", "sentiment": "Neutral", "urgency_score": 42, "summary": "x"}'),
        ScriptedLLM('["not", "an", "object"]'),
    ]
)
@pytest.mark.asyncio
async def test_analyze_falls_back(llm):
    result = await TicketAnalysisService(llm).analyze("Something is wrong with my account.")

    assert result == TicketAnalysis.failed()
    assert result.fallback


# ========== Summaries ==========

@pytest.mark.asyncio
async def test_summarize_formats_conversation():
    llm = ScriptedLLM("  The customer was double charged; the agent is checking.  ")

    summary = await ConversationSummaryService(llm).summarize(CONVERSATION)

    assert summary == "The customer was double charged; the agent is checking."
    prompt = llm.calls[0]["messages"][1]["content"]
    assert "CUSTOMER: I was charged twice." in prompt
    assert "AGENT: Let me check the invoice." in prompt


@pytest.mark.asyncio
async def test_summarize_falls_back():
    assert await ConversationSummaryService(ScriptedLLM(error=LLMException("down"))).summarize(CONVERSATION) == SUMMARY_FALLBACK
    assert await ConversationSummaryService(ScriptedLLM("   ")).summarize(CONVERSATION) == SUMMARY_FALLBACK
    assert await ConversationSummaryService(ScriptedLLM("unused")).summarize([]) == SUMMARY_FALLBACK


def test_format_conversation():
    assert format_conversation(CONVERSATION) == "CUSTOMER: I was charged twice.\nAGENT: Let me check the invoice."


# ========== Drafts ==========

@pytest.mark.asyncio
async def test_draft_uses_retrieved_passages():
    retriever = FixedRetriever(RetrievalResult.from_chunks([
        RetrievedChunk("Refunds are issued within 5 days.", "Refund Policy.pdf", 0.9),
        RetrievedChunk("Duplicate charges are reversed automatically.", "Billing FAQ.md", 0.8),
        RetrievedChunk("Refunds go to the original card.", "Refund Policy.pdf", 0.7),
    ]))
    llm = ScriptedLLM("We have refunded the duplicate charge [1].")

    draft = await DraftComposer(llm, retriever, top_k=3).compose("Where is my refund?", CONVERSATION)

    assert draft.draft == "We have refunded the duplicate charge [1]."
    assert draft.sources == ["Refund Policy.pdf", "Billing FAQ.md"]
    assert draft.context_used == 3
    assert retriever.queries == [("Where is my refund?", 3)]

    prompt = llm.calls[0]["messages"][1]["content"]
    assert "[1] (Refund Policy.pdf)\nRefunds are issued within 5 days." in prompt
    assert "[2] (Billing FAQ.md)" in prompt
    assert "CUSTOMER: I was charged twice." in prompt
    assert llm.calls[0]["operation"] == "draft_reply"


@pytest.mark.asyncio
async def test_draft_without_context_still_drafts():
    llm = ScriptedLLM("A specialist will follow up shortly.")

    draft = await DraftComposer(llm, FixedRetriever(RetrievalResult.empty())).compose("Do you ship to Mars?")

    assert draft.sources == []
    assert draft.context_used == 0
    assert not draft.has_sources
    assert "No relevant knowledge base passages were found." in llm.calls[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_draft_propagates_llm_failure():
    composer = DraftComposer(ScriptedLLM(error=LLMException("quota exceeded")), FixedRetriever(RetrievalResult.empty()))

    with pytest.raises(LLMException):
        await composer.compose("Hello?")


@pytest.mark.asyncio
async def test_draft_grounded_in_knowledge_base(service):
    await service.ingest(b"Duplicate charges are reversed within three days.", "Billing FAQ.txt")
    composer = DraftComposer(LLMClientAdapter(MockLLMClient(8)), KnowledgeBaseRetriever(service), top_k=2)

    draft = await composer.compose("Duplicate charges are reversed within three days.")

    assert draft.sources == ["Billing FAQ.txt"]
    assert draft.context_used == 1
    assert draft.draft.startswith("Thank you for reaching out.")
