"""
Pytest configuration shared by unit and integration tests.

Settings are read from the environment at import time, so the offline
defaults (in-memory storage, deterministic agents) are set before any
helpdesk module is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("AGENT_PROVIDER", "stub")
os.environ.setdefault("CONFIG_SOURCE", "database")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from helpdesk.config import ArticleStatus  # noqa: E402
from helpdesk.triage.application import (  # noqa: E402
    KeywordClassifier,
    TemplateDrafter,
    TriageOrchestrator,
    TriageStores,
)
from helpdesk.triage.domain import Article, Ticket, TriageConfig  # noqa: E402
from helpdesk.triage.infrastructure import (  # noqa: E402
    InMemoryTicketRepository,
    InMemorySuggestionRepository,
    InMemoryArticleRepository,
    InMemoryConfigRepository,
    InMemoryAuditRepository,
)


@pytest.fixture
def stores():
    return TriageStores(
        tickets=InMemoryTicketRepository(),
        suggestions=InMemorySuggestionRepository(),
        articles=InMemoryArticleRepository(),
        config=InMemoryConfigRepository(),
        audit=InMemoryAuditRepository(),
    )


@pytest.fixture
def orchestrator(stores):
    return TriageOrchestrator(stores, KeywordClassifier(), TemplateDrafter())


@pytest.fixture
def add_ticket(stores):
    async def _add(title: str, description: str) -> Ticket:
        return await stores.tickets.save(Ticket.create(title, description))
    return _add


@pytest.fixture
def add_article(stores):
    async def _add(title: str, body: str, tags=None, published: bool = True) -> Article:
        status = ArticleStatus.PUBLISHED if published else ArticleStatus.DRAFT
        return await stores.articles.save(Article.create(title, body, tags or [], status))
    return _add


@pytest.fixture
def set_config(stores):
    async def _set(auto_close_enabled: bool, confidence_threshold: float = 0.78) -> TriageConfig:
        return await stores.config.save(TriageConfig(
            auto_close_enabled=auto_close_enabled,
            confidence_threshold=confidence_threshold
        ))
    return _set
