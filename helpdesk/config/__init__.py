"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Operator-tunable triage values (auto-close flag, confidence threshold,
SLA hours) are NOT process settings: they live in the config store and are
read once per triage run. The DEFAULT_* settings below are only used by the
HTTP surface when it has to create the first config record.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-triage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Storage ==========
    storage_backend: Literal["postgres", "memory"] = Field(
        default="postgres",
        description="Where tickets, suggestions, articles and audit logs live"
    )
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Triage Configuration Store ==========
    config_source: Literal["database", "file"] = Field(
        default="database",
        description="Backend of the operator config singleton"
    )
    triage_config_path: Path = Field(
        default=Path("triage_config.yaml"),
        description="YAML file holding the operator config when config_source=file"
    )
    default_auto_close_enabled: bool = Field(
        default=False,
        description="Auto-close flag written when the config record is first created"
    )
    default_confidence_threshold: float = Field(
        default=0.78,
        description="Confidence threshold written when the config record is first created",
        ge=0.0,
        le=1.0
    )
    default_sla_hours: int = Field(
        default=24,
        description="SLA hours written when the config record is first created",
        ge=1
    )

    # ========== Agent (classifier / drafter backends) ==========
    agent_provider: Literal["stub", "openai"] = Field(
        default="stub",
        description="Classifier/drafter backend; openai falls back to stub on failure"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the OpenAI-compatible endpoint"
    )
    llm_base_url: Optional[str] = Field(
        default=None,
        description="Override for OpenAI-compatible providers (e.g. https://api.groq.com/openai/v1)"
    )
    llm_model: str = Field(default="gpt-3.5-turbo", description="Model for classification and drafting")
    llm_temperature: float = Field(
        default=0.1,
        description="Temperature for classification calls",
        ge=0.0,
        le=1.0
    )
    llm_draft_temperature: float = Field(
        default=0.7,
        description="Temperature for drafting calls",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Default max tokens for LLM generation",
        ge=1,
        le=8000
    )
    prompt_version: str = Field(default="1.0", description="Prompt version recorded in provenance")
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )

    # ========== Background Worker ==========
    worker_concurrency: int = Field(default=4, description="Concurrent triage consumers", ge=1, le=64)
    worker_queue_size: int = Field(default=1000, description="Max pending triage runs", ge=1)
    worker_failure_history: int = Field(
        default=100,
        description="How many failed runs the worker keeps for inspection",
        ge=1
    )
    serialize_ticket_runs: bool = Field(
        default=True,
        description="Serialize in-process triage runs that target the same ticket"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
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
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketCategory(str, Enum):
    """Ticket topics the classifier can predict."""
    BILLING = "billing"
    TECH = "tech"
    SHIPPING = "shipping"
    OTHER = "other"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    TRIAGED = "triaged"
    WAITING_HUMAN = "waiting_human"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ArticleStatus(str, Enum):
    """Knowledge-base article publication states."""
    DRAFT = "draft"
    PUBLISHED = "published"


class AuditActor(str, Enum):
    """Who performed an audited action. The pipeline only emits SYSTEM."""
    SYSTEM = "system"
    AGENT = "agent"
    USER = "user"


class AuditAction(str, Enum):
    """Audit vocabulary. Values are read by external tooling, keep them stable."""
    TICKET_CREATED = "TICKET_CREATED"
    AGENT_CLASSIFIED = "AGENT_CLASSIFIED"
    KB_RETRIEVED = "KB_RETRIEVED"
    DRAFT_GENERATED = "DRAFT_GENERATED"
    AUTO_CLOSED = "AUTO_CLOSED"
    ASSIGNED_TO_HUMAN = "ASSIGNED_TO_HUMAN"
    TRIAGE_FAILED = "TRIAGE_FAILED"
    REPLY_SENT = "REPLY_SENT"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"


class DecisionReason(str, Enum):
    """Why the decision engine did or did not auto-close."""
    CONFIDENCE_ABOVE_THRESHOLD = "confidence_above_threshold"
    LOW_CONFIDENCE = "low_confidence"
    AUTO_CLOSE_DISABLED = "auto_close_disabled"
