"""
Triage Domain Entities
======================

Domain entities for the ticket triage module.

Contains pure Python business objects; persistence adapters map them to and
from storage models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from helpdesk.config import (
    TicketCategory, TicketStatus, ArticleStatus, AuditActor, AuditAction
)
from helpdesk.triage.domain.value_objects import ModelInfo


MAX_CITED_ARTICLES = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class Reply:
    """A message appended to a ticket thread."""
    content: str
    author_id: Optional[str] = None  # None for system-authored replies
    is_agent: bool = False
    timestamp: datetime = field(default_factory=_now)


@dataclass
class Ticket:
    """
    Support ticket entity.

    The triage pipeline only touches the suggestion reference, the status
    and the reply thread. Status changes made by humans (reply, assign)
    may move the ticket in any direction.
    """
    id: str
    title: str
    description: str
    category: TicketCategory = TicketCategory.OTHER
    status: TicketStatus = TicketStatus.OPEN
    assignee_id: Optional[str] = None
    suggestion_id: Optional[str] = None
    replies: List[Reply] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        category: TicketCategory = TicketCategory.OTHER
    ) -> "Ticket":
        """Open a new ticket."""
        return cls(id=_new_id(), title=title.strip(), description=description, category=category)

    @property
    def classification_text(self) -> str:
        """Text fed to the classifier, retriever and drafter."""
        return f"{self.title} {self.description}"

    def mark_triaged(self, suggestion_id: str) -> None:
        """Point the ticket at its current suggestion; replaces any previous one."""
        self.suggestion_id = suggestion_id
        self._set_status(TicketStatus.TRIAGED)

    def resolve_with_agent_reply(self, content: str) -> None:
        """Auto-resolve: post the drafted reply as a system-authored agent reply."""
        self.replies.append(Reply(content=content, author_id=None, is_agent=True))
        self._set_status(TicketStatus.RESOLVED)

    def hand_to_human(self) -> None:
        self._set_status(TicketStatus.WAITING_HUMAN)

    def add_reply(
        self,
        content: str,
        author_id: Optional[str],
        is_agent: bool = True,
        status: Optional[TicketStatus] = None
    ) -> Reply:
        reply = Reply(content=content, author_id=author_id, is_agent=is_agent)
        self.replies.append(reply)
        if status is not None:
            self._set_status(status)
        else:
            self.updated_at = reply.timestamp
        return reply

    def assign(self, assignee_id: str) -> None:
        self.assignee_id = assignee_id
        self._set_status(TicketStatus.WAITING_HUMAN)

    def _set_status(self, status: TicketStatus) -> None:
        self.status = status
        self.updated_at = _now()


@dataclass
class Article:
    """
    Knowledge-base article.

    Tags are normalised (trimmed, lower-cased, empty ones dropped) so the
    retriever can match them against a predicted category.
    """
    id: str
    title: str
    body: str
    tags: List[str] = field(default_factory=list)
    status: ArticleStatus = ArticleStatus.DRAFT
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        normalised = []
        for tag in self.tags:
            tag = tag.strip().lower()
            if tag and tag not in normalised:
                normalised.append(tag)
        self.tags = normalised

    @classmethod
    def create(
        cls,
        title: str,
        body: str,
        tags: Optional[List[str]] = None,
        status: ArticleStatus = ArticleStatus.DRAFT
    ) -> "Article":
        return cls(id=_new_id(), title=title.strip(), body=body, tags=list(tags or []), status=status)

    @property
    def is_published(self) -> bool:
        return self.status == ArticleStatus.PUBLISHED


@dataclass
class Suggestion:
    """
    Output of one triage run.

    Created once per run; only `auto_closed` may change afterwards, and only
    from False to True.
    """
    id: str
    ticket_id: str
    predicted_category: TicketCategory
    article_ids: List[str]
    draft_reply: str
    confidence: float
    model_info: ModelInfo
    auto_closed: bool = False
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        """Validate suggestion."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")
        if len(set(self.article_ids)) != len(self.article_ids):
            raise ValueError("Cited article ids must be unique")
        if len(self.article_ids) > MAX_CITED_ARTICLES:
            raise ValueError(f"A suggestion cites at most {MAX_CITED_ARTICLES} articles")
        if not self.draft_reply:
            raise ValueError("Draft reply must not be empty")

    @classmethod
    def create(
        cls,
        ticket_id: str,
        predicted_category: TicketCategory,
        article_ids: List[str],
        draft_reply: str,
        confidence: float,
        model_info: ModelInfo
    ) -> "Suggestion":
        return cls(
            id=_new_id(),
            ticket_id=ticket_id,
            predicted_category=predicted_category,
            article_ids=list(article_ids),
            draft_reply=draft_reply,
            confidence=confidence,
            model_info=model_info
        )

    def mark_auto_closed(self) -> None:
        self.auto_closed = True


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit record. Entries are appended, never updated."""
    ticket_id: str
    correlation_id: str
    actor: AuditActor
    action: AuditAction
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)
    id: str = field(default_factory=_new_id)


@dataclass
class ClassificationResult:
    """Predicted category with the classifier's self-reported confidence."""
    category: TicketCategory
    confidence: float  # 0.0 to 1.0
    latency_ms: int
    provider: str = "stub"
    model: str = "deterministic-v1"

    def __post_init__(self):
        """Validate classification result."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")


@dataclass
class DraftResult:
    """Drafted reply and the ids of the articles it cites, in order."""
    draft_reply: str
    citations: List[str]
    latency_ms: int
    provider: str = "stub"
    model: str = "deterministic-v1"

    @property
    def has_citations(self) -> bool:
        return len(self.citations) > 0
