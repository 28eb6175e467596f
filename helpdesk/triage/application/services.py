"""
Triage Application Services
============================

Application services for ticket triage.

Orchestrates the classify -> retrieve -> draft -> decide pipeline between
domain entities and repositories, and exposes the operations the HTTP
trigger surface needs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from helpdesk.config import (
    TicketCategory, TicketStatus, ArticleStatus, AuditActor, AuditAction
)
from helpdesk.core import (
    AuditWriteException,
    QueueFullException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_logger, get_context_logger
from helpdesk.triage.application.agents import IClassifier, IDrafter
from helpdesk.triage.domain import (
    Article,
    AuditEntry,
    DecisionEngine,
    ModelInfo,
    Suggestion,
    Ticket,
    TriageConfig,
    MAX_CITED_ARTICLES,
)

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def find_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """Insert or update a ticket."""

    @abstractmethod
    async def list(self, status: Optional[TicketStatus] = None, limit: int = 50) -> List[Ticket]:
        """List tickets, most recently updated first."""


class ISuggestionRepository(ABC):
    """Interface for suggestion storage."""

    @abstractmethod
    async def save(self, suggestion: Suggestion) -> Suggestion:
        """Insert or update a suggestion."""

    @abstractmethod
    async def find_by_id(self, suggestion_id: str) -> Optional[Suggestion]:
        """Get suggestion by ID."""

    @abstractmethod
    async def find_latest_by_ticket(self, ticket_id: str) -> Optional[Suggestion]:
        """Get the most recently created suggestion for a ticket."""


class IArticleRepository(ABC):
    """Interface for knowledge-base article access."""

    @abstractmethod
    async def find_by_tag_published(self, tag: str, limit: int) -> List[Article]:
        """Published articles carrying the tag."""

    @abstractmethod
    async def search_text_published(self, query: str, limit: int) -> List[Article]:
        """Published articles ranked by text relevance, best first."""

    @abstractmethod
    async def list_published(self, limit: int) -> List[Article]:
        """Published articles, newest first."""

    @abstractmethod
    async def save(self, article: Article) -> Article:
        """Insert or update an article."""

    @abstractmethod
    async def find_by_id(self, article_id: str) -> Optional[Article]:
        """Get article by ID."""


class IConfigRepository(ABC):
    """Interface for the triage configuration singleton."""

    @abstractmethod
    async def find_singleton(self) -> Optional[TriageConfig]:
        """Get the stored configuration, or None when none was saved."""

    @abstractmethod
    async def save(self, config: TriageConfig) -> TriageConfig:
        """Replace the stored configuration."""


class IAuditRepository(ABC):
    """Interface for the append-only audit log."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry. Entries are never updated."""

    @abstractmethod
    async def find_by_ticket(
        self,
        ticket_id: str,
        newest_first: bool = True,
        limit: Optional[int] = None
    ) -> List[AuditEntry]:
        """Audit trail of a ticket."""


class ITriageScheduler(ABC):
    """Interface for handing triage runs to background execution."""

    @abstractmethod
    def submit(self, ticket_id: str, correlation_id: str) -> None:
        """Enqueue a run and return immediately."""


@dataclass
class TriageStores:
    """The repositories a triage runtime is wired with."""
    tickets: ITicketRepository
    suggestions: ISuggestionRepository
    articles: IArticleRepository
    config: IConfigRepository
    audit: IAuditRepository


# ========== Pipeline Components ==========

class AuditRecorder:
    """
    Appends audit entries for triage stages and trigger-surface events.

    Required entries propagate write failures as AuditWriteException;
    best-effort entries log the failure and continue.
    """

    def __init__(self, audit_repo: IAuditRepository):
        self._audit_repo = audit_repo

    async def record(
        self,
        ticket_id: str,
        correlation_id: str,
        action: AuditAction,
        metadata: Optional[Dict[str, Any]] = None,
        actor: AuditActor = AuditActor.SYSTEM,
        required: bool = True
    ) -> Optional[AuditEntry]:
        entry = AuditEntry(
            ticket_id=ticket_id,
            correlation_id=correlation_id,
            actor=actor,
            action=action,
            metadata=dict(metadata or {})
        )
        try:
            return await self._audit_repo.append(entry)
        except Exception as e:
            if required:
                raise AuditWriteException(action.value, ticket_id, str(e)) from e
            logger.warning(
                "Audit write failed",
                extra={
                    "ticket_id": ticket_id,
                    "correlation_id": correlation_id,
                    "action": action.value,
                    "error": str(e)
                }
            )
            return None


class KBRetriever:
    """
    Two-stage knowledge-base retrieval.

    Stage 1 takes published articles tagged with the predicted category.
    Stage 2 runs only when stage 1 found fewer than two, and appends
    text-search hits that are not already present. Lookup failures degrade
    to an empty list.
    """

    MIN_TAG_MATCHES = 2

    def __init__(self, article_repo: IArticleRepository, max_results: int = MAX_CITED_ARTICLES):
        self._article_repo = article_repo
        self._max_results = max_results

    async def retrieve(self, text: str, category: TicketCategory) -> List[Article]:
        try:
            articles = await self._article_repo.find_by_tag_published(
                category.value, self._max_results
            )
            articles = self._dedupe(articles)

            if len(articles) < self.MIN_TAG_MATCHES:
                ranked = await self._article_repo.search_text_published(text, self._max_results)
                articles = self._dedupe(articles + list(ranked))

            return articles[:self._max_results]
        except Exception as e:
            logger.warning(
                "KB retrieval failed, continuing without articles",
                extra={"category": category.value, "error": str(e), "error_type": type(e).__name__}
            )
            return []

    @staticmethod
    def _dedupe(articles: List[Article]) -> List[Article]:
        seen = set()
        unique = []
        for article in articles:
            if article.id not in seen:
                seen.add(article.id)
                unique.append(article)
        return unique


class TriageOrchestrator:
    """
    Runs one triage pass for a ticket.

    Stages are strictly sequential and each stage's audit entry is appended
    before the next one starts. Any failure is audited as TRIAGE_FAILED and
    re-raised to the caller.
    """

    def __init__(
        self,
        stores: TriageStores,
        classifier: IClassifier,
        drafter: IDrafter,
        retriever: Optional[KBRetriever] = None,
        audit: Optional[AuditRecorder] = None,
        prompt_version: str = "1.0"
    ):
        self._stores = stores
        self._classifier = classifier
        self._drafter = drafter
        self._retriever = retriever or KBRetriever(stores.articles)
        self._audit = audit or AuditRecorder(stores.audit)
        self._prompt_version = prompt_version

    async def run(self, ticket_id: str, correlation_id: str) -> Suggestion:
        """
        Triage a ticket.

        Args:
            ticket_id: Ticket to triage
            correlation_id: Identifier shared by every audit entry of this run

        Returns:
            The persisted Suggestion

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            AuditWriteException: If a required audit entry could not be written
            RepositoryException: If a store operation failed
        """
        log = get_context_logger(__name__, correlation_id)
        log.info("Starting triage", extra={"ticket_id": ticket_id})

        try:
            suggestion = await self._run(ticket_id, correlation_id, log)
        except Exception as e:
            log.error(
                "Triage failed",
                extra={"ticket_id": ticket_id, "error": str(e), "error_type": type(e).__name__}
            )
            try:
                await self._audit.record(
                    ticket_id,
                    correlation_id,
                    AuditAction.TRIAGE_FAILED,
                    {"error": str(e), "error_type": type(e).__name__}
                )
            except AuditWriteException as audit_error:
                raise audit_error from e
            raise

        log.info("Triage completed", extra={"ticket_id": ticket_id, "suggestion_id": suggestion.id})
        return suggestion

    async def _run(self, ticket_id: str, correlation_id: str, log) -> Suggestion:
        ticket = await self._stores.tickets.find_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        config = await self._stores.config.find_singleton() or TriageConfig()
        text = ticket.classification_text

        # Classify
        classification = await self._classifier.classify(text)
        await self._audit.record(ticket_id, correlation_id, AuditAction.AGENT_CLASSIFIED, {
            "predicted_category": classification.category.value,
            "confidence": classification.confidence,
            "latency_ms": classification.latency_ms,
            "provider": classification.provider,
        })

        # Retrieve
        articles = await self._retriever.retrieve(text, classification.category)
        await self._audit.record(ticket_id, correlation_id, AuditAction.KB_RETRIEVED, {
            "article_count": len(articles),
            "article_ids": [article.id for article in articles],
        })

        # Draft
        draft = await self._drafter.draft(text, articles)
        await self._audit.record(ticket_id, correlation_id, AuditAction.DRAFT_GENERATED, {
            "draft_length": len(draft.draft_reply),
            "citation_count": len(draft.citations),
            "latency_ms": draft.latency_ms,
            "provider": draft.provider,
        })

        suggestion = Suggestion.create(
            ticket_id=ticket.id,
            predicted_category=classification.category,
            article_ids=[article.id for article in articles],
            draft_reply=draft.draft_reply,
            confidence=classification.confidence,
            model_info=ModelInfo(
                provider=classification.provider,
                model=classification.model,
                prompt_version=self._prompt_version,
                latency_ms=classification.latency_ms + draft.latency_ms
            )
        )
        await self._stores.suggestions.save(suggestion)

        ticket.mark_triaged(suggestion.id)
        await self._stores.tickets.save(ticket)

        # Decide
        decision = DecisionEngine.decide(classification.confidence, config)
        if decision.auto_close:
            ticket.resolve_with_agent_reply(draft.draft_reply)
            suggestion.mark_auto_closed()
            await self._stores.suggestions.save(suggestion)
            await self._stores.tickets.save(ticket)
            await self._audit.record(ticket_id, correlation_id, AuditAction.AUTO_CLOSED, {
                "confidence": classification.confidence,
                "threshold": config.confidence_threshold,
            })
            log.info(
                "Ticket auto-closed",
                extra={"ticket_id": ticket_id, "confidence": classification.confidence}
            )
        else:
            ticket.hand_to_human()
            await self._stores.tickets.save(ticket)
            await self._audit.record(ticket_id, correlation_id, AuditAction.ASSIGNED_TO_HUMAN, {
                "confidence": classification.confidence,
                "threshold": config.confidence_threshold,
                "reason": decision.reason.value,
            })
            log.info(
                "Ticket assigned to human",
                extra={
                    "ticket_id": ticket_id,
                    "confidence": classification.confidence,
                    "reason": decision.reason.value
                }
            )

        return suggestion


# ========== Application Services ==========

class TriageService:
    """Boundary of the triage core: trigger runs and read their results."""

    def __init__(self, stores: TriageStores, scheduler: ITriageScheduler):
        self._stores = stores
        self._scheduler = scheduler

    def start_triage(self, ticket_id: str, correlation_id: str) -> None:
        """
        Schedule a background triage run and return immediately.

        Raises:
            ValidationException: On blank identifiers, or when the worker
                cannot accept the run (QueueFullException)
        """
        if not isinstance(ticket_id, str) or not ticket_id.strip():
            raise ValidationException("ticket_id must be a non-empty string")
        if not isinstance(correlation_id, str) or not correlation_id.strip():
            raise ValidationException("correlation_id must be a non-empty string")
        self._scheduler.submit(ticket_id, correlation_id)

    async def get_suggestion(self, ticket_id: str) -> Suggestion:
        """
        Get the current suggestion for a ticket.

        Falls back to the latest suggestion when the ticket has no reference.

        Raises:
            ResourceNotFoundException: If no suggestion exists
        """
        ticket = await self._stores.tickets.find_by_id(ticket_id)
        suggestion = None
        if ticket is not None and ticket.suggestion_id:
            suggestion = await self._stores.suggestions.find_by_id(ticket.suggestion_id)
        if suggestion is None:
            suggestion = await self._stores.suggestions.find_latest_by_ticket(ticket_id)
        if suggestion is None:
            raise ResourceNotFoundException("Suggestion for ticket", ticket_id)
        return suggestion


class TicketService:
    """Ticket operations of the trigger surface."""

    AUDIT_PAGE_SIZE = 50

    def __init__(self, stores: TriageStores, triage: TriageService, audit: Optional[AuditRecorder] = None):
        self._stores = stores
        self._triage = triage
        self._audit = audit or AuditRecorder(stores.audit)

    async def create_ticket(
        self,
        title: str,
        description: str,
        category: TicketCategory = TicketCategory.OTHER
    ) -> Tuple[Ticket, Optional[str]]:
        """
        Open a ticket and schedule its triage.

        Returns:
            The ticket and the triage correlation ID, or None when the worker
            could not accept the run
        """
        ticket = await self._stores.tickets.save(Ticket.create(title, description, category))
        correlation_id = str(uuid4())

        await self._audit.record(
            ticket.id,
            correlation_id,
            AuditAction.TICKET_CREATED,
            {"title": ticket.title, "category": ticket.category.value},
            actor=AuditActor.USER,
            required=False
        )

        try:
            self._triage.start_triage(ticket.id, correlation_id)
        except QueueFullException as e:
            logger.warning(
                "Triage not scheduled for new ticket",
                extra={"ticket_id": ticket.id, "correlation_id": correlation_id, "error": str(e)}
            )
            return ticket, None

        logger.info("Ticket created", extra={"ticket_id": ticket.id, "correlation_id": correlation_id})
        return ticket, correlation_id

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._stores.tickets.find_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def list_tickets(self, status: Optional[TicketStatus] = None, limit: int = 50) -> List[Ticket]:
        return await self._stores.tickets.list(status=status, limit=limit)

    async def add_reply(
        self,
        ticket_id: str,
        content: str,
        correlation_id: str,
        author_id: Optional[str] = None,
        status: Optional[TicketStatus] = None
    ) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        ticket.add_reply(content, author_id=author_id, is_agent=True, status=status)
        await self._stores.tickets.save(ticket)

        await self._audit.record(
            ticket.id,
            correlation_id,
            AuditAction.REPLY_SENT,
            {"reply_length": len(content), "status": ticket.status.value},
            actor=AuditActor.AGENT,
            required=False
        )
        return ticket

    async def assign(self, ticket_id: str, assignee_id: str, correlation_id: str) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        ticket.assign(assignee_id)
        await self._stores.tickets.save(ticket)

        await self._audit.record(
            ticket.id,
            correlation_id,
            AuditAction.TICKET_ASSIGNED,
            {"assignee_id": assignee_id},
            actor=AuditActor.AGENT,
            required=False
        )
        return ticket

    async def get_audit_trail(self, ticket_id: str) -> List[AuditEntry]:
        return await self._stores.audit.find_by_ticket(
            ticket_id, newest_first=True, limit=self.AUDIT_PAGE_SIZE
        )


class KnowledgeBaseService:
    """Knowledge-base management and published search."""

    def __init__(self, article_repo: IArticleRepository):
        self._article_repo = article_repo

    async def create_article(
        self,
        title: str,
        body: str,
        tags: Optional[List[str]] = None,
        status: ArticleStatus = ArticleStatus.DRAFT
    ) -> Article:
        article = await self._article_repo.save(Article.create(title, body, tags, status))
        logger.info("Article created", extra={"article_id": article.id, "status": article.status.value})
        return article

    async def get_article(self, article_id: str) -> Article:
        article = await self._article_repo.find_by_id(article_id)
        if article is None:
            raise ResourceNotFoundException("Article", article_id)
        return article

    async def get_articles(self, article_ids: List[str]) -> List[Article]:
        """Resolve ids in order, skipping articles that no longer exist."""
        articles = []
        for article_id in article_ids:
            article = await self._article_repo.find_by_id(article_id)
            if article is not None:
                articles.append(article)
        return articles

    async def search(
        self,
        query: Optional[str] = None,
        tag: Optional[str] = None,
        limit: int = 10
    ) -> List[Article]:
        """Search published articles by text, tag, or both."""
        tag = tag.strip().lower() if tag else None
        if query and query.strip():
            articles = await self._article_repo.search_text_published(query, limit)
            if tag:
                articles = [article for article in articles if tag in article.tags]
            return articles
        if tag:
            return await self._article_repo.find_by_tag_published(tag, limit)
        return await self._article_repo.list_published(limit)


class ConfigService:
    """Operator access to the triage configuration singleton."""

    def __init__(self, config_repo: IConfigRepository, defaults: TriageConfig):
        self._config_repo = config_repo
        self._defaults = defaults

    async def get_config(self) -> TriageConfig:
        """Get the configuration, persisting the operator defaults if none exists."""
        config = await self._config_repo.find_singleton()
        if config is None:
            config = await self._config_repo.save(self._defaults)
            logger.info("Triage config initialised from defaults", extra=config.to_dict())
        return config

    async def update_config(
        self,
        auto_close_enabled: Optional[bool] = None,
        confidence_threshold: Optional[float] = None,
        sla_hours: Optional[int] = None
    ) -> TriageConfig:
        """
        Apply a partial update.

        Raises:
            ValidationException: If the resulting configuration is invalid
        """
        current = await self.get_config()
        try:
            updated = TriageConfig(
                auto_close_enabled=current.auto_close_enabled if auto_close_enabled is None else auto_close_enabled,
                confidence_threshold=current.confidence_threshold if confidence_threshold is None else confidence_threshold,
                sla_hours=current.sla_hours if sla_hours is None else sla_hours
            )
        except ValueError as e:
            raise ValidationException(str(e))

        config = await self._config_repo.save(updated)
        logger.info("Triage config updated", extra=config.to_dict())
        return config
