"""
Configuration Module
====================

Environment-driven settings (pydantic-settings) plus the string constants
that validators and services compare against.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Process configuration. Values come from the environment or `.env`;
    names are case-insensitive (CHUNK_SIZE sets chunk_size).
    """

    # ========== Application ==========
    app_name: str = Field(default="support-kb-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Echo SQL and return exception text in 500 responses")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Metadata Store (Database) ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/support",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Pooled metadata store connections", ge=1)
    db_max_overflow: int = Field(default=10, description="Connections allowed beyond the pool size", ge=0)

    # ========== Vector Store ==========
    vector_store_backend: str = Field(
        default="milvus",
        description="Vector index backend: 'milvus' (Zilliz Cloud) or 'memory'"
    )
    zilliz_uri: str = Field(
        default="",
        description="Zilliz Cloud cluster URI (public endpoint from the console)"
    )
    zilliz_api_key: str = Field(
        default="",
        description="Zilliz Cloud token"
    )
    milvus_collection_name: str = Field(
        default="knowledge_base",
        description="Collection holding all knowledge base vectors"
    )
    kb_namespace: str = Field(
        default="sops",
        description="Namespace (Milvus partition) reserved for knowledge base vectors"
    )
    embedding_dimension: int = Field(
        default=1024,
        description="Length of every stored vector; must match the embedding model",
        ge=8
    )

    # ========== Knowledge Base ==========
    chunk_size: int = Field(
        default=1000,
        description="Maximum characters per chunk",
        ge=100
    )
    chunk_overlap: int = Field(
        default=200,
        description="Characters repeated between consecutive chunks",
        ge=0
    )
    upsert_batch_size: int = Field(
        default=100,
        description="Vectors per upsert request",
        ge=1,
        le=1000
    )
    embedding_concurrency: int = Field(
        default=4,
        description="Max in-flight embedding requests during ingestion",
        ge=1,
        le=16
    )
    top_k_results: int = Field(
        default=5,
        description="Number of chunks to retrieve for draft replies",
        ge=1,
        le=20
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted upload in bytes",
        ge=1
    )

    # ========== LLM Provider ==========
    llm_provider: str = Field(
        default="zai",
        description="LLM provider: 'zai', 'openai' or 'mock'"
    )
    zai_api_key: Optional[str] = Field(
        default=None,
        description="Z.AI API key"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )
    mock_llm: bool = Field(
        default=False,
        description="Force the offline mock client regardless of llm_provider"
    )

    # ========== Generation ==========
    llm_model: str = Field(
        default="glm-4.7",
        description="Model for analysis, summaries and drafts"
    )
    embedding_model: str = Field(
        default="embedding-2",
        description="Embedding model"
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Sampling temperature",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=1000,
        description="Completion token cap",
        ge=1,
        le=8000
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Origins allowed by the CORS middleware"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Only the three deployment stages are accepted."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("vector_store_backend")
    @classmethod
    def validate_vector_store_backend(cls, v: str) -> str:
        if v not in VALID_VECTOR_BACKENDS:
            raise ValueError(f"vector_store_backend must be one of {VALID_VECTOR_BACKENDS}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"llm_provider must be one of {VALID_LLM_PROVIDERS}")
        return v

    @model_validator(mode="after")
    def validate_chunking(self) -> "Settings":
        """Chunks must be longer than their overlap or chunking never advances."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


# ========== Constants ==========

class VectorBackend(str):
    """Supported vector index backends."""
    MILVUS = "milvus"
    MEMORY = "memory"


class LLMProvider(str):
    """Supported LLM providers."""
    ZAI = "zai"
    OPENAI = "openai"
    MOCK = "mock"


class TicketCategory(str):
    """Categories assigned by ticket analysis."""
    TECHNICAL = "Technical Issue"
    BILLING = "Billing Issue"
    ACCOUNT = "Account Issue"
    GENERAL = "General Inquiry"
    FEATURE_REQUEST = "Feature Request"
    OTHER = "Other"


class Sentiment(str):
    """Customer sentiment labels."""
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


# ========== Allowed values ==========

VALID_VECTOR_BACKENDS = [VectorBackend.MILVUS, VectorBackend.MEMORY]
VALID_LLM_PROVIDERS = [LLMProvider.ZAI, LLMProvider.OPENAI, LLMProvider.MOCK]
TICKET_CATEGORIES = [
    TicketCategory.TECHNICAL, TicketCategory.BILLING, TicketCategory.ACCOUNT,
    TicketCategory.GENERAL, TicketCategory.FEATURE_REQUEST, TicketCategory.OTHER
]
SENTIMENTS = [Sentiment.POSITIVE, Sentiment.NEUTRAL, Sentiment.NEGATIVE]


# Global settings instance
settings = get_settings()
