"""
Triage Runtime Wiring
=====================

Builds the triage runtime (stores, agents, orchestrator, worker and the
boundary services) from settings. The runtime is constructed explicitly and
stored on `app.state`; nothing here is a process-wide singleton.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.config import Settings
from helpdesk.infrastructure.llm import ILLMClient, create_llm_client
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application import (
    IClassifier,
    IDrafter,
    KeywordClassifier,
    LLMClassifier,
    TemplateDrafter,
    LLMDrafter,
    TriageStores,
    TriageOrchestrator,
    TriageService,
    TicketService,
    KnowledgeBaseService,
    ConfigService,
)
from helpdesk.triage.domain import TriageConfig
from helpdesk.triage.infrastructure.external import TriageConfigManager, YAMLConfigRepository
from helpdesk.triage.infrastructure.memory import (
    InMemoryTicketRepository,
    InMemorySuggestionRepository,
    InMemoryArticleRepository,
    InMemoryConfigRepository,
    InMemoryAuditRepository,
)
from helpdesk.triage.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemySuggestionRepository,
    SQLAlchemyArticleRepository,
    SQLAlchemyConfigRepository,
    SQLAlchemyAuditRepository,
)
from helpdesk.triage.infrastructure.worker import TriageWorker

logger = get_logger(__name__)


def build_stores(
    config: Settings,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    config_manager: Optional[TriageConfigManager] = None
) -> TriageStores:
    """
    Build repositories for the configured storage backend.

    The config store is the YAML file when CONFIG_SOURCE=file, otherwise it
    follows the storage backend.
    """
    if config.storage_backend == "postgres" and session_maker is not None:
        stores = TriageStores(
            tickets=SQLAlchemyTicketRepository(session_maker),
            suggestions=SQLAlchemySuggestionRepository(session_maker),
            articles=SQLAlchemyArticleRepository(session_maker),
            config=SQLAlchemyConfigRepository(session_maker),
            audit=SQLAlchemyAuditRepository(session_maker),
        )
    else:
        if config.storage_backend == "postgres":
            logger.warning("Database unavailable, using in-memory storage")
        stores = TriageStores(
            tickets=InMemoryTicketRepository(),
            suggestions=InMemorySuggestionRepository(),
            articles=InMemoryArticleRepository(),
            config=InMemoryConfigRepository(),
            audit=InMemoryAuditRepository(),
        )

    if config_manager is not None:
        stores.config = YAMLConfigRepository(config_manager)
    return stores


def build_classifier(config: Settings, llm_client: Optional[ILLMClient] = None) -> IClassifier:
    if config.agent_provider == "openai":
        return LLMClassifier(
            llm_client or create_llm_client(config),
            fallback=KeywordClassifier(),
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens
        )
    return KeywordClassifier()


def build_drafter(config: Settings, llm_client: Optional[ILLMClient] = None) -> IDrafter:
    if config.agent_provider == "openai":
        return LLMDrafter(
            llm_client or create_llm_client(config),
            fallback=TemplateDrafter(),
            temperature=config.llm_draft_temperature,
            max_tokens=config.llm_max_tokens
        )
    return TemplateDrafter()


def default_triage_config(config: Settings) -> TriageConfig:
    """Operator defaults persisted by the config endpoint when none exist."""
    return TriageConfig(
        auto_close_enabled=config.default_auto_close_enabled,
        confidence_threshold=config.default_confidence_threshold,
        sla_hours=config.default_sla_hours
    )


@dataclass
class TriageRuntime:
    """Everything the HTTP layer needs, owned by the application lifespan."""
    stores: TriageStores
    orchestrator: TriageOrchestrator
    worker: TriageWorker
    triage: TriageService
    tickets: TicketService
    knowledge_base: KnowledgeBaseService
    config: ConfigService
    storage_backend: str
    agent_provider: str
    config_manager: Optional[TriageConfigManager] = None

    async def start(self) -> None:
        if self.config_manager is not None:
            self.config_manager.load()
            self.config_manager.start_watching()
        await self.worker.start()

    async def stop(self, drain: bool = True) -> None:
        await self.worker.stop(drain=drain)
        if self.config_manager is not None:
            self.config_manager.stop_watching()


def build_runtime(
    config: Settings,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    llm_client: Optional[ILLMClient] = None,
    stores: Optional[TriageStores] = None
) -> TriageRuntime:
    """
    Wire a triage runtime.

    Args:
        config: Application settings
        session_maker: Database session maker; in-memory stores when None
        llm_client: LLM client override (tests)
        stores: Pre-built stores override (tests)
    """
    config_manager = None
    if config.config_source == "file":
        config_manager = TriageConfigManager(config.triage_config_path)

    if stores is None:
        stores = build_stores(config, session_maker, config_manager)
    elif config_manager is not None:
        stores.config = YAMLConfigRepository(config_manager)

    if config.agent_provider == "openai" and llm_client is None:
        llm_client = create_llm_client(config)

    orchestrator = TriageOrchestrator(
        stores=stores,
        classifier=build_classifier(config, llm_client),
        drafter=build_drafter(config, llm_client),
        prompt_version=config.prompt_version
    )
    worker = TriageWorker(
        orchestrator.run,
        concurrency=config.worker_concurrency,
        queue_size=config.worker_queue_size,
        failure_history=config.worker_failure_history,
        serialize_per_ticket=config.serialize_ticket_runs
    )
    triage = TriageService(stores, worker)

    logger.info(
        "Triage runtime built",
        extra={
            "storage_backend": config.storage_backend if session_maker is not None else "memory",
            "agent_provider": config.agent_provider,
            "config_source": config.config_source,
        }
    )

    return TriageRuntime(
        stores=stores,
        orchestrator=orchestrator,
        worker=worker,
        triage=triage,
        tickets=TicketService(stores, triage),
        knowledge_base=KnowledgeBaseService(stores.articles),
        config=ConfigService(stores.config, default_triage_config(config)),
        storage_backend=config.storage_backend if session_maker is not None else "memory",
        agent_provider=config.agent_provider,
        config_manager=config_manager
    )
