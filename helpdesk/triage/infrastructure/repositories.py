"""
Triage Infrastructure Repositories
====================================

SQLAlchemy implementations of the triage repository interfaces.

Each repository receives the session maker and opens one short session per
call, so a triage run never holds a transaction across stages.
"""

import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.config import TicketCategory, TicketStatus, ArticleStatus, AuditActor, AuditAction
from helpdesk.core import RepositoryException
from helpdesk.infrastructure.database import get_session_context
from helpdesk.triage.application import (
    ITicketRepository,
    ISuggestionRepository,
    IArticleRepository,
    IConfigRepository,
    IAuditRepository,
)
from helpdesk.triage.domain import (
    Article, AuditEntry, ModelInfo, Reply, Suggestion, Ticket, TriageConfig
)
from helpdesk.triage.infrastructure.models import (
    TicketModel, SuggestionModel, ArticleModel, ConfigModel, AuditLogModel
)


_SEARCH_TERM = re.compile(r"\w+")


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


@asynccontextmanager
async def _unit_of_work(
    session_maker: async_sessionmaker[AsyncSession],
    operation: str
) -> AsyncGenerator[AsyncSession, None]:
    try:
        async with get_session_context(session_maker) as session:
            yield session
    except SQLAlchemyError as e:
        raise RepositoryException(f"{operation} failed: {e}") from e


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_by_id(self, ticket_id: str) -> Optional[Ticket]:
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        async with _unit_of_work(self._session_maker, "Load ticket") as session:
            model = await session.get(TicketModel, ticket_uuid)
            return self._to_domain(model) if model else None

    async def save(self, ticket: Ticket) -> Ticket:
        ticket_uuid = _parse_uuid(ticket.id)
        if ticket_uuid is None:
            raise RepositoryException(f"Invalid ticket ID: {ticket.id}")

        async with _unit_of_work(self._session_maker, "Save ticket") as session:
            await session.merge(TicketModel(
                id=ticket_uuid,
                title=ticket.title,
                description=ticket.description,
                category=ticket.category.value,
                status=ticket.status.value,
                assignee_id=ticket.assignee_id,
                suggestion_id=_parse_uuid(ticket.suggestion_id),
                replies=[
                    {
                        "content": reply.content,
                        "author_id": reply.author_id,
                        "is_agent": reply.is_agent,
                        "timestamp": reply.timestamp.isoformat(),
                    }
                    for reply in ticket.replies
                ],
                created_at=ticket.created_at,
                updated_at=ticket.updated_at
            ))
        return ticket

    async def list(self, status: Optional[TicketStatus] = None, limit: int = 50) -> List[Ticket]:
        stmt = select(TicketModel)
        if status is not None:
            stmt = stmt.where(TicketModel.status == status.value)
        stmt = stmt.order_by(TicketModel.updated_at.desc()).limit(limit)

        async with _unit_of_work(self._session_maker, "List tickets") as session:
            result = await session.execute(stmt)
            return [self._to_domain(model) for model in result.scalars().all()]

    @staticmethod
    def _to_domain(model: TicketModel) -> Ticket:
        return Ticket(
            id=str(model.id),
            title=model.title,
            description=model.description,
            category=TicketCategory(model.category),
            status=TicketStatus(model.status),
            assignee_id=model.assignee_id,
            suggestion_id=str(model.suggestion_id) if model.suggestion_id else None,
            replies=[
                Reply(
                    content=reply["content"],
                    author_id=reply.get("author_id"),
                    is_agent=reply.get("is_agent", False),
                    timestamp=datetime.fromisoformat(reply["timestamp"])
                )
                for reply in (model.replies or [])
            ],
            created_at=model.created_at,
            updated_at=model.updated_at
        )


class SQLAlchemySuggestionRepository(ISuggestionRepository):
    """SQLAlchemy implementation for triage suggestions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def save(self, suggestion: Suggestion) -> Suggestion:
        suggestion_uuid = _parse_uuid(suggestion.id)
        ticket_uuid = _parse_uuid(suggestion.ticket_id)
        if suggestion_uuid is None or ticket_uuid is None:
            raise RepositoryException(f"Invalid suggestion reference: {suggestion.id}")

        async with _unit_of_work(self._session_maker, "Save suggestion") as session:
            await session.merge(SuggestionModel(
                id=suggestion_uuid,
                ticket_id=ticket_uuid,
                predicted_category=suggestion.predicted_category.value,
                article_ids=list(suggestion.article_ids),
                draft_reply=suggestion.draft_reply,
                confidence=suggestion.confidence,
                auto_closed=suggestion.auto_closed,
                provider=suggestion.model_info.provider,
                model=suggestion.model_info.model,
                prompt_version=suggestion.model_info.prompt_version,
                latency_ms=suggestion.model_info.latency_ms,
                created_at=suggestion.created_at
            ))
        return suggestion

    async def find_by_id(self, suggestion_id: str) -> Optional[Suggestion]:
        suggestion_uuid = _parse_uuid(suggestion_id)
        if suggestion_uuid is None:
            return None

        async with _unit_of_work(self._session_maker, "Load suggestion") as session:
            model = await session.get(SuggestionModel, suggestion_uuid)
            return self._to_domain(model) if model else None

    async def find_latest_by_ticket(self, ticket_id: str) -> Optional[Suggestion]:
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(SuggestionModel)
            .where(SuggestionModel.ticket_id == ticket_uuid)
            .order_by(SuggestionModel.created_at.desc())
            .limit(1)
        )
        async with _unit_of_work(self._session_maker, "Load latest suggestion") as session:
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return self._to_domain(model) if model else None

    @staticmethod
    def _to_domain(model: SuggestionModel) -> Suggestion:
        return Suggestion(
            id=str(model.id),
            ticket_id=str(model.ticket_id),
            predicted_category=TicketCategory(model.predicted_category),
            article_ids=list(model.article_ids or []),
            draft_reply=model.draft_reply,
            confidence=model.confidence,
            model_info=ModelInfo(
                provider=model.provider,
                model=model.model,
                prompt_version=model.prompt_version,
                latency_ms=model.latency_ms
            ),
            auto_closed=model.auto_closed,
            created_at=model.created_at
        )


class SQLAlchemyArticleRepository(IArticleRepository):
    """
    SQLAlchemy implementation for knowledge-base articles.

    Text search uses PostgreSQL full-text search over title and body,
    matching any query term and ranking with ts_rank.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_by_tag_published(self, tag: str, limit: int) -> List[Article]:
        stmt = (
            select(ArticleModel)
            .where(
                ArticleModel.status == ArticleStatus.PUBLISHED.value,
                ArticleModel.tags.contains([tag.strip().lower()])
            )
            .order_by(ArticleModel.created_at.desc())
            .limit(limit)
        )
        async with _unit_of_work(self._session_maker, "Find articles by tag") as session:
            result = await session.execute(stmt)
            return [self._to_domain(model) for model in result.scalars().all()]

    async def search_text_published(self, query: str, limit: int) -> List[Article]:
        terms = _SEARCH_TERM.findall(query.lower())
        if not terms:
            return []

        document = func.to_tsvector("english", ArticleModel.title + " " + ArticleModel.body)
        ts_query = func.to_tsquery("english", " | ".join(terms))
        rank = func.ts_rank(document, ts_query)

        stmt = (
            select(ArticleModel)
            .where(
                ArticleModel.status == ArticleStatus.PUBLISHED.value,
                document.op("@@")(ts_query)
            )
            .order_by(rank.desc(), ArticleModel.created_at.desc())
            .limit(limit)
        )
        async with _unit_of_work(self._session_maker, "Search articles") as session:
            result = await session.execute(stmt)
            return [self._to_domain(model) for model in result.scalars().all()]

    async def list_published(self, limit: int) -> List[Article]:
        stmt = (
            select(ArticleModel)
            .where(ArticleModel.status == ArticleStatus.PUBLISHED.value)
            .order_by(ArticleModel.created_at.desc())
            .limit(limit)
        )
        async with _unit_of_work(self._session_maker, "List articles") as session:
            result = await session.execute(stmt)
            return [self._to_domain(model) for model in result.scalars().all()]

    async def save(self, article: Article) -> Article:
        article_uuid = _parse_uuid(article.id)
        if article_uuid is None:
            raise RepositoryException(f"Invalid article ID: {article.id}")

        async with _unit_of_work(self._session_maker, "Save article") as session:
            await session.merge(ArticleModel(
                id=article_uuid,
                title=article.title,
                body=article.body,
                tags=list(article.tags),
                status=article.status.value,
                created_at=article.created_at
            ))
        return article

    async def find_by_id(self, article_id: str) -> Optional[Article]:
        article_uuid = _parse_uuid(article_id)
        if article_uuid is None:
            return None

        async with _unit_of_work(self._session_maker, "Load article") as session:
            model = await session.get(ArticleModel, article_uuid)
            return self._to_domain(model) if model else None

    @staticmethod
    def _to_domain(model: ArticleModel) -> Article:
        return Article(
            id=str(model.id),
            title=model.title,
            body=model.body,
            tags=list(model.tags or []),
            status=ArticleStatus(model.status),
            created_at=model.created_at
        )


class SQLAlchemyConfigRepository(IConfigRepository):
    """SQLAlchemy implementation of the configuration singleton."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_singleton(self) -> Optional[TriageConfig]:
        async with _unit_of_work(self._session_maker, "Load triage config") as session:
            model = await session.get(ConfigModel, ConfigModel.SINGLETON_KEY)
            if model is None:
                return None
            return TriageConfig(
                auto_close_enabled=model.auto_close_enabled,
                confidence_threshold=model.confidence_threshold,
                sla_hours=model.sla_hours
            )

    async def save(self, config: TriageConfig) -> TriageConfig:
        async with _unit_of_work(self._session_maker, "Save triage config") as session:
            await session.merge(ConfigModel(
                key=ConfigModel.SINGLETON_KEY,
                auto_close_enabled=config.auto_close_enabled,
                confidence_threshold=config.confidence_threshold,
                sla_hours=config.sla_hours,
                updated_at=datetime.now(timezone.utc)
            ))
        return config


class SQLAlchemyAuditRepository(IAuditRepository):
    """SQLAlchemy implementation of the append-only audit log."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def append(self, entry: AuditEntry) -> AuditEntry:
        async with _unit_of_work(self._session_maker, f"Append {entry.action.value} audit") as session:
            session.add(AuditLogModel(
                id=UUID(entry.id),
                ticket_id=entry.ticket_id,
                correlation_id=entry.correlation_id,
                actor=entry.actor.value,
                action=entry.action.value,
                meta=dict(entry.metadata),
                timestamp=entry.timestamp
            ))
        return entry

    async def find_by_ticket(
        self,
        ticket_id: str,
        newest_first: bool = True,
        limit: Optional[int] = None
    ) -> List[AuditEntry]:
        order = AuditLogModel.timestamp.desc() if newest_first else AuditLogModel.timestamp.asc()
        stmt = select(AuditLogModel).where(AuditLogModel.ticket_id == ticket_id).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with _unit_of_work(self._session_maker, "Load audit trail") as session:
            result = await session.execute(stmt)
            return [
                AuditEntry(
                    id=str(model.id),
                    ticket_id=model.ticket_id,
                    correlation_id=model.correlation_id,
                    actor=AuditActor(model.actor),
                    action=AuditAction(model.action),
                    metadata=dict(model.meta or {}),
                    timestamp=model.timestamp
                )
                for model in result.scalars().all()
            ]
