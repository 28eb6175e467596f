"""Tests for the triage application services."""

import pytest

from helpdesk.config import TicketCategory, TicketStatus, ArticleStatus, AuditActor, AuditAction
from helpdesk.core import (
    QueueFullException,
    RepositoryException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.triage.application import (
    ConfigService,
    ITriageScheduler,
    KnowledgeBaseService,
    TicketService,
    TriageService,
)
from helpdesk.triage.domain import ModelInfo, Suggestion, TriageConfig
from helpdesk.triage.infrastructure import InMemoryAuditRepository


class FakeScheduler(ITriageScheduler):
    def __init__(self, error=None):
        self.error = error
        self.submitted = []

    def submit(self, ticket_id, correlation_id):
        if self.error:
            raise self.error
        self.submitted.append((ticket_id, correlation_id))


class FailingAuditRepository(InMemoryAuditRepository):
    async def append(self, entry):
        raise RepositoryException("audit store unavailable")


def _suggestion(ticket_id):
    return Suggestion.create(
        ticket_id=ticket_id,
        predicted_category=TicketCategory.BILLING,
        article_ids=[],
        draft_reply="Hello",
        confidence=0.5,
        model_info=ModelInfo()
    )


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def triage_service(stores, scheduler):
    return TriageService(stores, scheduler)


@pytest.fixture
def ticket_service(stores, triage_service):
    return TicketService(stores, triage_service)


class TestTriageService:

    @pytest.mark.parametrize("ticket_id,correlation_id", [
        ("", "c-1"),
        ("   ", "c-1"),
        ("t-1", ""),
        (None, "c-1"),
    ])
    def test_blank_identifiers_are_rejected(self, triage_service, scheduler, ticket_id, correlation_id):
        with pytest.raises(ValidationException):
            triage_service.start_triage(ticket_id, correlation_id)
        assert scheduler.submitted == []

    def test_start_triage_submits(self, triage_service, scheduler):
        triage_service.start_triage("t-1", "c-1")
        assert scheduler.submitted == [("t-1", "c-1")]

    def test_queue_full_propagates(self, stores):
        service = TriageService(stores, FakeScheduler(error=QueueFullException("Triage queue is full")))
        with pytest.raises(QueueFullException):
            service.start_triage("t-1", "c-1")

    @pytest.mark.asyncio
    async def test_get_suggestion_follows_ticket_reference(self, stores, triage_service, add_ticket):
        ticket = await add_ticket("Title", "Body")
        referenced = await stores.suggestions.save(_suggestion(ticket.id))
        await stores.suggestions.save(_suggestion(ticket.id))
        ticket.mark_triaged(referenced.id)
        await stores.tickets.save(ticket)

        assert (await triage_service.get_suggestion(ticket.id)).id == referenced.id

    @pytest.mark.asyncio
    async def test_get_suggestion_falls_back_to_latest(self, stores, triage_service, add_ticket):
        ticket = await add_ticket("Title", "Body")
        await stores.suggestions.save(_suggestion(ticket.id))
        latest = await stores.suggestions.save(_suggestion(ticket.id))

        assert (await triage_service.get_suggestion(ticket.id)).id == latest.id

    @pytest.mark.asyncio
    async def test_get_suggestion_missing(self, triage_service, add_ticket):
        ticket = await add_ticket("Title", "Body")
        with pytest.raises(ResourceNotFoundException):
            await triage_service.get_suggestion(ticket.id)


class TestTicketService:

    @pytest.mark.asyncio
    async def test_create_schedules_triage(self, stores, ticket_service, scheduler):
        ticket, correlation_id = await ticket_service.create_ticket(
            "Charged twice", "Please refund", TicketCategory.BILLING
        )

        assert scheduler.submitted == [(ticket.id, correlation_id)]
        assert (await stores.tickets.find_by_id(ticket.id)).status == TicketStatus.OPEN

        [entry] = await stores.audit.find_by_ticket(ticket.id)
        assert entry.action == AuditAction.TICKET_CREATED
        assert entry.actor == AuditActor.USER
        assert entry.correlation_id == correlation_id
        assert entry.metadata == {"title": "Charged twice", "category": "billing"}

    @pytest.mark.asyncio
    async def test_create_survives_full_queue(self, stores):
        scheduler = FakeScheduler(error=QueueFullException("Triage queue is full"))
        service = TicketService(stores, TriageService(stores, scheduler))

        ticket, correlation_id = await service.create_ticket("Title", "Body")

        assert correlation_id is None
        assert await stores.tickets.find_by_id(ticket.id) is not None

    @pytest.mark.asyncio
    async def test_best_effort_audit_failure_does_not_block(self, stores, scheduler):
        stores.audit = FailingAuditRepository()
        service = TicketService(stores, TriageService(stores, scheduler))

        ticket, correlation_id = await service.create_ticket("Title", "Body")
        replied = await service.add_reply(ticket.id, "Looking into it", "c-2", author_id="agent-1")

        assert correlation_id is not None
        assert len(replied.replies) == 1

    @pytest.mark.asyncio
    async def test_reply_and_assign(self, stores, ticket_service):
        ticket, _ = await ticket_service.create_ticket("Title", "Body")

        await ticket_service.assign(ticket.id, "agent-1", "c-assign")
        updated = await ticket_service.add_reply(
            ticket.id, "Fixed", "c-reply", author_id="agent-1", status=TicketStatus.RESOLVED
        )

        assert updated.assignee_id == "agent-1"
        assert updated.status == TicketStatus.RESOLVED
        trail = await ticket_service.get_audit_trail(ticket.id)
        assert [entry.action for entry in trail] == [
            AuditAction.REPLY_SENT,
            AuditAction.TICKET_ASSIGNED,
            AuditAction.TICKET_CREATED,
        ]
        assert trail[0].correlation_id == "c-reply"
        assert trail[0].metadata == {"reply_length": 5, "status": "resolved"}

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, ticket_service):
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.get_ticket("missing")
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.assign("missing", "agent-1", "c-1")

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, ticket_service):
        first, _ = await ticket_service.create_ticket("First", "Body")
        second, _ = await ticket_service.create_ticket("Second", "Body")
        await ticket_service.assign(second.id, "agent-1", "c-1")

        waiting = await ticket_service.list_tickets(status=TicketStatus.WAITING_HUMAN)
        everything = await ticket_service.list_tickets()

        assert [ticket.id for ticket in waiting] == [second.id]
        assert {ticket.id for ticket in everything} == {first.id, second.id}


class TestKnowledgeBaseService:

    @pytest.mark.asyncio
    async def test_create_and_get(self, stores):
        service = KnowledgeBaseService(stores.articles)
        article = await service.create_article("Refunds", "Body", ["Billing"], ArticleStatus.PUBLISHED)

        fetched = await service.get_article(article.id)

        assert fetched.tags == ["billing"]
        with pytest.raises(ResourceNotFoundException):
            await service.get_article("missing")

    @pytest.mark.asyncio
    async def test_get_articles_skips_missing(self, stores, add_article):
        article = await add_article("Refunds", "Body")
        service = KnowledgeBaseService(stores.articles)

        articles = await service.get_articles(["gone", article.id])

        assert [item.id for item in articles] == [article.id]

    @pytest.mark.asyncio
    async def test_search_modes(self, stores, add_article):
        refund = await add_article("Refund policy", "Refund timelines", ["billing"])
        reset = await add_article("Password reset", "Reset your password", ["tech"])
        await add_article("Refund draft", "Refund refund", ["billing"], published=False)
        service = KnowledgeBaseService(stores.articles)

        assert [a.id for a in await service.search(query="refund")] == [refund.id]
        assert [a.id for a in await service.search(tag="TECH")] == [reset.id]
        assert await service.search(query="refund", tag="tech") == []
        assert {a.id for a in await service.search()} == {refund.id, reset.id}


class TestConfigService:

    @pytest.mark.asyncio
    async def test_defaults_are_persisted_on_first_read(self, stores):
        defaults = TriageConfig(auto_close_enabled=False, confidence_threshold=0.8)
        service = ConfigService(stores.config, defaults)

        assert await stores.config.find_singleton() is None
        assert await service.get_config() == defaults
        assert await stores.config.find_singleton() == defaults

    @pytest.mark.asyncio
    async def test_partial_update(self, stores):
        service = ConfigService(stores.config, TriageConfig())

        updated = await service.update_config(auto_close_enabled=True)

        assert updated == TriageConfig(auto_close_enabled=True, confidence_threshold=0.78, sla_hours=24)
        assert await stores.config.find_singleton() == updated

    @pytest.mark.asyncio
    async def test_invalid_update(self, stores):
        service = ConfigService(stores.config, TriageConfig())
        with pytest.raises(ValidationException):
            await service.update_config(confidence_threshold=1.5)
        assert (await service.get_config()).confidence_threshold == 0.78
