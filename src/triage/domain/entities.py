"""
Triage Domain Entities
======================

Domain entities for the ticket triage module.

Contains pure Python business objects for ticket analysis, conversation
summaries and knowledge-base-grounded draft replies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from src.config import TicketCategory, Sentiment, TICKET_CATEGORIES, SENTIMENTS


@dataclass
class TicketAnalysis:
    """
    Result of ticket analysis.

    Category, sentiment and urgency (1 = can wait, 10 = emergency) assigned
    by the LLM.
    """
    category: str
    sentiment: str
    urgency_score: int
    summary: str
    fallback: bool = False

    def __post_init__(self):
        """Validate analysis result."""
        if self.category not in TICKET_CATEGORIES:
            raise ValueError(f"Unknown category: {self.category}")
        if self.sentiment not in SENTIMENTS:
            raise ValueError(f"Unknown sentiment: {self.sentiment}")
        if not 1 <= self.urgency_score <= 10:
            raise ValueError("Urgency score must be between 1 and 10")

    @classmethod
    def failed(cls) -> "TicketAnalysis":
        """Neutral result used when automatic analysis is unavailable."""
        return cls(
            category=TicketCategory.OTHER,
            sentiment=Sentiment.NEUTRAL,
            urgency_score=5,
            summary="Automatic analysis failed.",
            fallback=True
        )


@dataclass
class ConversationMessage:
    """One message in a ticket conversation."""
    sender: str  # "customer" or "agent"
    message: str
    time: Optional[datetime] = None


@dataclass
class DraftReply:
    """
    Draft reply for an agent to review.

    Contains the generated text along with the knowledge base documents
    that informed it.
    """
    draft: str
    sources: List[str]
    context_used: int
    latency_ms: int
    prompt_tokens: int = 0
    completion_tokens: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_sources(self) -> bool:
        return len(self.sources) > 0


def format_conversation(messages: List[ConversationMessage]) -> str:
    """Render messages as 'SENDER: text' lines."""
    return "\n".join(f"{m.sender.upper()}: {m.message}" for m in messages)


class TicketAnalysisPromptBuilder:
    """
    Builds prompts for ticket analysis.

    Following DRY principle - all prompt logic in one place.
    """

    SYSTEM_PROMPT = f"""You are a customer support analyst.

Analyze the customer's message and classify it by:
1. Category: one of {", ".join(TICKET_CATEGORIES)}
2. Sentiment: one of {", ".join(SENTIMENTS)}
3. Urgency score: an integer from 1 (can wait) to 10 (emergency)
4. Summary: at most two sentences

Respond ONLY in JSON format:
{{
    "category": "Technical Issue",
    "sentiment": "Negative",
    "urgency_score": 7,
    "summary": "brief summary"
}}"""

    @classmethod
    def build_prompt(cls, message: str) -> str:
        """Build analysis prompt from the customer message."""
        return f'''Customer message:
"""
{message}
"""

Analyze this message (respond with JSON only):'''

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT


class SummaryPromptBuilder:
    """Builds prompts for conversation summaries."""

    SYSTEM_PROMPT = """You are a customer support assistant.

Summarize support conversations in 3-4 sentences of plain prose (no lists).
Focus on the core problem and where its resolution stands."""

    @classmethod
    def build_prompt(cls, messages: List[ConversationMessage]) -> str:
        return f'''Conversation:
"""
{format_conversation(messages)}
"""

Summary:'''

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT


class DraftPromptBuilder:
    """Builds prompts for knowledge-base-grounded draft replies."""

    SYSTEM_PROMPT = """You are a helpful customer support agent.

Write a reply to the customer's latest message. Follow these guidelines:

1. Base procedures and policies ONLY on the provided knowledge base passages
2. Cite passages with their numbers [1], [2], etc.
3. If the passages do not cover the question, say a specialist will follow up
4. Be polite, concise and professional
5. Never make up policies, prices or deadlines"""

    @classmethod
    def build_prompt(
        cls,
        context_message: str,
        passages: List[str],
        sources: List[str],
        conversation: List[ConversationMessage]
    ) -> str:
        if passages:
            context = "\n\n".join(
                f"[{i}] ({source})\n{text}"
                for i, (text, source) in enumerate(zip(passages, sources), 1)
            )
        else:
            context = "No relevant knowledge base passages were found."

        history = format_conversation(conversation) if conversation else "(no earlier messages)"

        return f"""Knowledge base passages:

{context}

---

Conversation so far:
{history}

---

Customer message to answer: {context_message}

Write the reply:"""

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT
