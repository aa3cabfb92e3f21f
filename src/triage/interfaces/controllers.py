"""
Triage Routes
=============

`/triage/analyze`, `/triage/summarize` and `/triage/draft`. The LLM client
comes from app.state; without one every route answers 503.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.knowledge_base.interfaces.controllers import build_knowledge_base_service, get_app_settings
from src.shared.infrastructure.logging import get_logger
from src.triage.application import (
    TicketAnalysisService,
    ConversationSummaryService,
    DraftComposer,
    AnalyzeRequest,
    AnalyzeResponse,
    SummarizeRequest,
    SummarizeResponse,
    DraftRequest,
    DraftResponse,
)
from src.triage.infrastructure import LLMClientAdapter, KnowledgeBaseRetriever

logger = get_logger(__name__)
router = APIRouter(prefix="/triage", tags=["Ticket Triage"])


# ========== OpenAPI examples ==========

ANALYZE_RESPONSE_EXAMPLE = {
    "category": "Billing Issue",
    "sentiment": "Negative",
    "urgency_score": 8,
    "summary": "Customer was charged twice for the same order and wants a refund.",
    "fallback": False,
    "processing_time_ms": 1200
}

DRAFT_RESPONSE_EXAMPLE = {
    "draft": "Thank you for contacting us. Refunds are issued to the original payment method within 5 business days [1].",
    "sources": ["Refund Policy.pdf"],
    "context_used": 3,
    "processing_time_ms": 2400
}


# ========== Dependencies ==========

def get_llm_adapter(request: Request) -> LLMClientAdapter:
    llm_client = getattr(request.app.state, "llm_client", None)
    if llm_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="LLM client not configured"
        )
    return LLMClientAdapter(llm_client)


def get_analysis_service(llm: LLMClientAdapter = Depends(get_llm_adapter)) -> TicketAnalysisService:
    return TicketAnalysisService(llm)


def get_summary_service(llm: LLMClientAdapter = Depends(get_llm_adapter)) -> ConversationSummaryService:
    return ConversationSummaryService(llm)


async def get_draft_composer(
    request: Request,
    session: AsyncSession = Depends(get_session),
    llm: LLMClientAdapter = Depends(get_llm_adapter)
) -> DraftComposer:
    knowledge_base = build_knowledge_base_service(request, session)
    config = get_app_settings(request)
    return DraftComposer(llm, KnowledgeBaseRetriever(knowledge_base), top_k=config.top_k_results)


# ========== Route Handlers ==========

@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    summary="Analyze a customer message",
    description="""
    Classify a customer message by category, sentiment and urgency, and
    summarize it. If the LLM is unreachable a neutral fallback is returned
    with `fallback: true`.
    """,
    responses={
        200: {
            "description": "Message analyzed",
            "content": {"application/json": {"example": ANALYZE_RESPONSE_EXAMPLE}}
        }
    }
)
async def analyze_ticket(
    payload: AnalyzeRequest,
    service: TicketAnalysisService = Depends(get_analysis_service)
):
    start_time = time.perf_counter()
    result = await service.analyze(payload.message)
    total_time = int((time.perf_counter() - start_time) * 1000)

    logger.info(
        "Ticket analyzed",
        extra={
            "category": result.category,
            "urgency_score": result.urgency_score,
            "fallback": result.fallback
        }
    )

    return AnalyzeResponse(
        category=result.category,
        sentiment=result.sentiment,
        urgency_score=result.urgency_score,
        summary=result.summary,
        fallback=result.fallback,
        processing_time_ms=total_time
    )


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    summary="Summarize a conversation"
)
async def summarize_conversation(
    payload: SummarizeRequest,
    service: ConversationSummaryService = Depends(get_summary_service)
):
    start_time = time.perf_counter()
    summary = await service.summarize([m.to_domain() for m in payload.messages])
    return SummarizeResponse(
        summary=summary,
        processing_time_ms=int((time.perf_counter() - start_time) * 1000)
    )


@router.post(
    "/draft",
    response_model=DraftResponse,
    summary="Draft a reply (RAG)",
    description="""
    Draft an agent reply grounded in the knowledge base.

    The endpoint:
    1. Retrieves the passages most relevant to the customer message
    2. Generates a reply from those passages and the conversation history
    3. Lists the source documents used

    Retrieval failures never block drafting; the reply is then written
    without knowledge base context.
    """,
    responses={
        200: {
            "description": "Draft generated",
            "content": {"application/json": {"example": DRAFT_RESPONSE_EXAMPLE}}
        },
        502: {"description": "LLM generation failed"},
        503: {"description": "Vector store or LLM not available"}
    }
)
async def draft_reply(
    payload: DraftRequest,
    composer: DraftComposer = Depends(get_draft_composer)
):
    result = await composer.compose(
        payload.context_message,
        [m.to_domain() for m in payload.conversation]
    )
    return DraftResponse(
        draft=result.draft,
        sources=result.sources,
        context_used=result.context_used,
        processing_time_ms=result.latency_ms
    )


triage_router = router
