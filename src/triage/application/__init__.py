"""
Triage Application Layer
=========================

Application layer for ticket triage module.

Contains:
- Services: ticket analysis, conversation summary, draft composition
- DTOs: Data transfer objects for API serialization
"""

from src.triage.application.dto import (
    ConversationMessageInfo,
    AnalyzeRequest,
    SummarizeRequest,
    DraftRequest,
    AnalyzeResponse,
    SummarizeResponse,
    DraftResponse,
)
from src.triage.application.services import (
    TicketAnalysisService,
    ConversationSummaryService,
    DraftComposer,
    SUMMARY_FALLBACK,
    ILLMClient,
    IContextRetriever,
)

__all__ = [
    # DTOs
    "ConversationMessageInfo",
    "AnalyzeRequest",
    "SummarizeRequest",
    "DraftRequest",
    "AnalyzeResponse",
    "SummarizeResponse",
    "DraftResponse",
    # Services
    "TicketAnalysisService",
    "ConversationSummaryService",
    "DraftComposer",
    "SUMMARY_FALLBACK",
    # Collaborator interfaces
    "ILLMClient",
    "IContextRetriever",
]
