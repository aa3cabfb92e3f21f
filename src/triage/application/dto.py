"""
Triage Application DTOs
========================

Data Transfer Objects for Triage API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from src.triage.domain import ConversationMessage


# ========== Type Aliases for Literals ==========
TicketCategoryStr = Literal[
    "Technical Issue", "Billing Issue", "Account Issue",
    "General Inquiry", "Feature Request", "Other"
]
SentimentStr = Literal["Positive", "Neutral", "Negative"]
SenderStr = Literal["customer", "agent"]


# ========== Request DTOs ==========

class ConversationMessageInfo(BaseModel):
    """One message of a ticket conversation."""
    sender: SenderStr
    message: str = Field(..., min_length=1)
    time: Optional[datetime] = None

    def to_domain(self) -> ConversationMessage:
        return ConversationMessage(sender=self.sender, message=self.message, time=self.time)


class AnalyzeRequest(BaseModel):
    """Request model for ticket analysis."""
    message: str = Field(..., min_length=10, description="Customer complaint message")

    @field_validator("message")
    @classmethod
    def validate_message_length(cls, v: str) -> str:
        """Ensure message is not too long for LLM."""
        if len(v) > 10000:
            raise ValueError("Message too long (max 10000 characters)")
        return v


class SummarizeRequest(BaseModel):
    """Request model for conversation summary."""
    messages: List[ConversationMessageInfo] = Field(..., min_length=1)


class DraftRequest(BaseModel):
    """Request model for draft reply generation."""
    context_message: str = Field(..., min_length=1, description="Customer message to answer")
    conversation: List[ConversationMessageInfo] = Field(default_factory=list)

    @field_validator("context_message")
    @classmethod
    def validate_context_length(cls, v: str) -> str:
        """Ensure the message is not too long."""
        if len(v) > 2000:
            raise ValueError("Context message too long (max 2000 characters)")
        return v


# ========== Response DTOs ==========

class AnalyzeResponse(BaseModel):
    """Response model for ticket analysis."""
    category: TicketCategoryStr
    sentiment: SentimentStr
    urgency_score: int = Field(..., ge=1, le=10)
    summary: str
    fallback: bool
    processing_time_ms: int


class SummarizeResponse(BaseModel):
    """Response model for conversation summary."""
    summary: str
    processing_time_ms: int


class DraftResponse(BaseModel):
    """Response model for draft reply generation."""
    draft: str
    sources: List[str]
    context_used: int
    processing_time_ms: int
