"""
Triage Domain Layer
===================

Domain layer for ticket triage module.

Contains:
- Entities: TicketAnalysis, ConversationMessage, DraftReply
- Prompt builders for analysis, summaries and drafts

This layer is framework-agnostic and contains pure business logic.
"""

from src.triage.domain.entities import (
    TicketAnalysis,
    ConversationMessage,
    DraftReply,
    format_conversation,
    TicketAnalysisPromptBuilder,
    SummaryPromptBuilder,
    DraftPromptBuilder,
)

__all__ = [
    "TicketAnalysis",
    "ConversationMessage",
    "DraftReply",
    "format_conversation",
    "TicketAnalysisPromptBuilder",
    "SummaryPromptBuilder",
    "DraftPromptBuilder",
]
