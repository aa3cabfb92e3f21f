"""
Support Knowledge Base Service - Main Application
==================================================

Knowledge base ingestion and retrieval for the support ticketing platform.

Modules:
- Knowledge Base: Upload, chunk, embed, index and retrieve support documents
- Triage: Ticket analysis, conversation summaries and grounded draft replies

Each module is layered domain / application / infrastructure / interfaces;
shared adapters (metadata database, LLM, vector index) live in
src/infrastructure and are created once here, in the lifespan.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from src.config import settings
from src.core import ApplicationException

# Infrastructure
from src.infrastructure.database import init_database, close_database, create_tables, ping_database
from src.infrastructure.llm import create_llm_client
from src.infrastructure.vectorstore import create_vector_store

# Module Routers
from src.knowledge_base.interfaces import knowledge_base_router
from src.triage.interfaces import triage_router

# Logging and middleware
from src.shared.infrastructure.logging import setup_logging, get_logger
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Wire shared collaborators onto app.state.

    Logging comes first. A missing LLM key or an unreachable vector index
    leaves the matching app.state attribute as None; routes needing it
    answer 503 and /health reports degraded.
    """
    # startup
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Knowledge Base Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    app.state.settings = settings

    logger.info("Connecting metadata store")
    init_database()

    # Server still starts without a database; metadata routes fail until it is back
    try:
        await create_tables()
    except Exception as e:
        logger.warning("Metadata tables not created, database unreachable", extra={"error": str(e)})

    logger.info("Initializing LLM client", extra={"provider": settings.llm_provider})
    try:
        app.state.llm_client = create_llm_client(settings)
    except ApplicationException as e:
        logger.warning("LLM client not configured", extra={"error": e.message})
        app.state.llm_client = None

    logger.info("Initializing vector store", extra={"backend": settings.vector_store_backend})
    try:
        vector_store = create_vector_store(settings)
        await vector_store.initialize()
        app.state.vector_store = vector_store
    except Exception as e:
        logger.warning("Vector index unavailable", extra={"error": str(e)})
        app.state.vector_store = None

    logger.info("Knowledge Base Service started successfully")

    yield

    # shutdown
    logger.info("Shutting down Knowledge Base Service")
    await close_database()
    logger.info("Knowledge Base Service shutdown complete")


app = FastAPI(
    title="Support Knowledge Base API",
    description="""
    ## Knowledge Base Ingestion & Retrieval

    Support documents (SOPs, policies, FAQs) are uploaded, split into
    overlapping chunks, embedded and indexed for semantic retrieval. Agents'
    draft replies are grounded in the retrieved passages.

    ---

    ### 📚 Knowledge Base Module

    **Endpoints:**
    - `POST /knowledge-base/upload` - Upload and index a document
    - `GET /knowledge-base` - List uploaded documents
    - `GET /knowledge-base/{id}` - Get one document
    - `DELETE /knowledge-base/{id}` - Delete a document and its vectors
    - `POST /knowledge-base/retrieve` - Retrieve relevant passages
    - `POST /knowledge-base/reconcile` - Report or repair index drift

    ---

    ### 🤖 Triage Module

    **Endpoints:**
    - `POST /triage/analyze` - Category, sentiment and urgency of a message
    - `POST /triage/summarize` - Summarize a conversation
    - `POST /triage/draft` - Draft a reply grounded in the knowledge base

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Middleware: last added runs first, so correlation IDs exist before request logging
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Routers
app.include_router(knowledge_base_router)
app.include_router(triage_router)


# Service endpoints

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service health",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "llm_client": "available (zai)",
                        "vector_store": "available (milvus, 42 vectors)"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """Dependency status; always 200, with status "degraded" when any check fails."""
    llm_client = getattr(request.app.state, "llm_client", None)
    vector_store = getattr(request.app.state, "vector_store", None)

    checks = {
        "database": "connected" if await ping_database() else "unavailable",
        "llm_client": f"available ({llm_client.provider})" if llm_client else "not_configured",
        "vector_store": "not_configured"
    }

    if vector_store is not None:
        try:
            count = await vector_store.count(settings.kb_namespace)
            checks["vector_store"] = f"available ({vector_store.backend}, {count} vectors)"
        except ApplicationException as e:
            checks["vector_store"] = f"error: {e.message}"

    healthy = all(value.startswith(("connected", "available")) for value in checks.values())

    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Service name, version and route map."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "knowledge_base": {
                "prefix": "/knowledge-base",
                "endpoints": [
                    "POST /knowledge-base/upload - Upload document",
                    "GET /knowledge-base - List documents",
                    "GET /knowledge-base/{id} - Get document",
                    "DELETE /knowledge-base/{id} - Delete document",
                    "POST /knowledge-base/retrieve - Retrieve passages",
                    "POST /knowledge-base/reconcile - Reconcile index"
                ]
            },
            "triage": {
                "prefix": "/triage",
                "endpoints": [
                    "POST /triage/analyze - Analyze message",
                    "POST /triage/summarize - Summarize conversation",
                    "POST /triage/draft - Draft reply"
                ]
            }
        }
    }


# Local entry point: python -m src.main

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
