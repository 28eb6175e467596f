"""
Triage Application DTOs
========================

Data Transfer Objects for the triage API layer.

Pydantic models for request/response validation. Field names are snake_case.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.triage.domain import (
    Article, AuditEntry, Reply, Suggestion, Ticket, TriageConfig
)


# ========== Type Aliases for Literals ==========
TicketCategoryStr = Literal["billing", "tech", "shipping", "other"]
TicketStatusStr = Literal["open", "triaged", "waiting_human", "resolved", "closed"]
ArticleStatusStr = Literal["draft", "published"]


# ========== Request DTOs ==========

class CreateTicketRequest(BaseModel):
    """Request model for opening a ticket."""
    title: str = Field(..., min_length=1, max_length=200, description="Ticket title")
    description: str = Field(..., min_length=1, max_length=2000, description="Ticket description")
    category: TicketCategoryStr = Field(default="other", description="Category chosen by the requester")

    @field_validator("title", "description")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Must not be blank")
        return v


class ReplyRequest(BaseModel):
    """Request model for an agent reply."""
    content: str = Field(..., min_length=1, max_length=5000)
    author_id: Optional[str] = Field(None, description="Replying agent")
    status: Optional[TicketStatusStr] = Field(None, description="Optional status change")


class AssignRequest(BaseModel):
    """Request model for assigning a ticket."""
    assignee_id: str = Field(..., min_length=1, description="Agent taking the ticket")


class TriageRequest(BaseModel):
    """Request model for a manual triage run."""
    ticket_id: str = Field(..., min_length=1)


class UpdateConfigRequest(BaseModel):
    """Partial update of the triage configuration."""
    auto_close_enabled: Optional[bool] = None
    confidence_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    sla_hours: Optional[int] = Field(None, ge=1)


class CreateArticleRequest(BaseModel):
    """Request model for a knowledge-base article."""
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    status: ArticleStatusStr = "draft"


# ========== Response DTOs ==========

class ReplyInfo(BaseModel):
    """Reply in a ticket thread."""
    content: str
    author_id: Optional[str]
    is_agent: bool
    timestamp: datetime

    @classmethod
    def from_domain(cls, reply: Reply) -> "ReplyInfo":
        return cls(
            content=reply.content,
            author_id=reply.author_id,
            is_agent=reply.is_agent,
            timestamp=reply.timestamp
        )


class TicketResponse(BaseModel):
    """Response model for a ticket."""
    id: str
    title: str
    description: str
    category: TicketCategoryStr
    status: TicketStatusStr
    assignee_id: Optional[str]
    suggestion_id: Optional[str]
    replies: List[ReplyInfo]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketResponse":
        """Create from domain entity."""
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            category=ticket.category.value,
            status=ticket.status.value,
            assignee_id=ticket.assignee_id,
            suggestion_id=ticket.suggestion_id,
            replies=[ReplyInfo.from_domain(reply) for reply in ticket.replies],
            created_at=ticket.created_at,
            updated_at=ticket.updated_at
        )


class CreateTicketResponse(BaseModel):
    """Response model for ticket creation."""
    ticket: TicketResponse
    correlation_id: Optional[str] = Field(None, description="Correlation ID of the scheduled triage run")


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    count: int


class TriageAcceptedResponse(BaseModel):
    """Response model for an accepted triage run."""
    ticket_id: str
    correlation_id: str
    status: str = "accepted"


class ArticleResponse(BaseModel):
    """Response model for an article."""
    id: str
    title: str
    body: str
    tags: List[str]
    status: ArticleStatusStr
    created_at: datetime

    @classmethod
    def from_domain(cls, article: Article) -> "ArticleResponse":
        return cls(
            id=article.id,
            title=article.title,
            body=article.body,
            tags=list(article.tags),
            status=article.status.value,
            created_at=article.created_at
        )


class ArticleListResponse(BaseModel):
    articles: List[ArticleResponse]
    count: int


class CitedArticleInfo(BaseModel):
    """Cited article summary shown with a suggestion."""
    id: str
    title: str
    tags: List[str]


class ModelInfoResponse(BaseModel):
    provider: str
    model: str
    prompt_version: str
    latency_ms: int


class SuggestionResponse(BaseModel):
    """Response model for a triage suggestion."""
    id: str
    ticket_id: str
    predicted_category: TicketCategoryStr
    article_ids: List[str]
    articles: List[CitedArticleInfo]
    draft_reply: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    auto_closed: bool
    model_info: ModelInfoResponse
    created_at: datetime

    @classmethod
    def from_domain(cls, suggestion: Suggestion, articles: List[Article]) -> "SuggestionResponse":
        """Create from domain entity with its cited articles resolved."""
        return cls(
            id=suggestion.id,
            ticket_id=suggestion.ticket_id,
            predicted_category=suggestion.predicted_category.value,
            article_ids=list(suggestion.article_ids),
            articles=[
                CitedArticleInfo(id=article.id, title=article.title, tags=list(article.tags))
                for article in articles
            ],
            draft_reply=suggestion.draft_reply,
            confidence=suggestion.confidence,
            auto_closed=suggestion.auto_closed,
            model_info=ModelInfoResponse(
                provider=suggestion.model_info.provider,
                model=suggestion.model_info.model,
                prompt_version=suggestion.model_info.prompt_version,
                latency_ms=suggestion.model_info.latency_ms
            ),
            created_at=suggestion.created_at
        )


class AuditEntryResponse(BaseModel):
    """Response model for an audit entry."""
    id: str
    ticket_id: str
    correlation_id: str
    actor: str
    action: str
    metadata: Dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            ticket_id=entry.ticket_id,
            correlation_id=entry.correlation_id,
            actor=entry.actor.value,
            action=entry.action.value,
            metadata=dict(entry.metadata),
            timestamp=entry.timestamp
        )


class AuditTrailResponse(BaseModel):
    ticket_id: str
    entries: List[AuditEntryResponse]
    count: int


class ConfigResponse(BaseModel):
    """Response model for the triage configuration."""
    auto_close_enabled: bool
    confidence_threshold: float
    sla_hours: int

    @classmethod
    def from_domain(cls, config: TriageConfig) -> "ConfigResponse":
        return cls(**config.to_dict())
