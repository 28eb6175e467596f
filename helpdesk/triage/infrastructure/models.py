"""
Triage Infrastructure Models
=============================

SQLAlchemy ORM models for the triage module.

These are the database representations of the domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Integer, Float, Text, Uuid, JSON, Index
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base
from helpdesk.config import TicketCategory, TicketStatus, ArticleStatus, AuditActor, AuditAction


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. Replies are stored inline as a JSON list.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Ticket content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[TicketCategory] = mapped_column(String(50), nullable=False, default=TicketCategory.OTHER)
    status: Mapped[TicketStatus] = mapped_column(String(50), nullable=False, default=TicketStatus.OPEN, index=True)

    # Assignment and triage
    assignee_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    suggestion_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    replies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class SuggestionModel(Base):
    """
    Database model for Suggestion entity.

    Maps to the 'agent_suggestions' table. Written once per triage run.
    """
    __tablename__ = "agent_suggestions"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Ticket reference
    ticket_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Triage output
    predicted_category: Mapped[TicketCategory] = mapped_column(String(50), nullable=False)
    article_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    draft_reply: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    auto_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Model provenance
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_version: Mapped[str] = mapped_column(String(50), nullable=False)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ArticleModel(Base):
    """
    Database model for knowledge-base articles.

    Maps to the 'articles' table. Tags use a Postgres string array so the
    retriever can filter with ANY().
    """
    __tablename__ = "articles"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[List[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    status: Mapped[ArticleStatus] = mapped_column(String(50), nullable=False, default=ArticleStatus.DRAFT, index=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ConfigModel(Base):
    """
    Database model for the triage configuration singleton.

    A single row keyed by `key`.
    """
    __tablename__ = "triage_config"

    SINGLETON_KEY = "default"

    key: Mapped[str] = mapped_column(String(50), primary_key=True, default=SINGLETON_KEY)
    auto_close_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confidence_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.78)
    sla_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AuditLogModel(Base):
    """
    Database model for audit entries.

    Maps to the 'audit_logs' table. Rows are inserted, never updated.
    """
    __tablename__ = "audit_logs"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # References
    ticket_id: Mapped[str] = mapped_column(String(255), nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Event
    actor: Mapped[AuditActor] = mapped_column(String(50), nullable=False)
    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    # Timestamp
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_audit_logs_ticket_id_timestamp", "ticket_id", "timestamp"),
    )
