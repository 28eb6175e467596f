"""
Triage Infrastructure Layer
============================

Infrastructure layer for ticket triage module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy and in-memory data access implementations
- External: YAML config file with hot reload
- Worker: background triage execution
- Factory: runtime wiring from settings
"""

from helpdesk.triage.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemySuggestionRepository,
    SQLAlchemyArticleRepository,
    SQLAlchemyConfigRepository,
    SQLAlchemyAuditRepository,
)
from helpdesk.triage.infrastructure.memory import (
    InMemoryTicketRepository,
    InMemorySuggestionRepository,
    InMemoryArticleRepository,
    InMemoryConfigRepository,
    InMemoryAuditRepository,
)
from helpdesk.triage.infrastructure.external import (
    ConfigFileHandler,
    TriageConfigManager,
    YAMLConfigRepository,
)
from helpdesk.triage.infrastructure.worker import TriageWorker, FailedRun
from helpdesk.triage.infrastructure.factory import (
    TriageRuntime,
    build_runtime,
    build_stores,
    build_classifier,
    build_drafter,
    default_triage_config,
)

__all__ = [
    "SQLAlchemyTicketRepository",
    "SQLAlchemySuggestionRepository",
    "SQLAlchemyArticleRepository",
    "SQLAlchemyConfigRepository",
    "SQLAlchemyAuditRepository",
    "InMemoryTicketRepository",
    "InMemorySuggestionRepository",
    "InMemoryArticleRepository",
    "InMemoryConfigRepository",
    "InMemoryAuditRepository",
    "ConfigFileHandler",
    "TriageConfigManager",
    "YAMLConfigRepository",
    "TriageWorker",
    "FailedRun",
    "TriageRuntime",
    "build_runtime",
    "build_stores",
    "build_classifier",
    "build_drafter",
    "default_triage_config",
]
