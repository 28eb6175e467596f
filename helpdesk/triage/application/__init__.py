"""
Triage Application Layer
=========================

Application layer for ticket triage module.

Contains:
- Agents: classifier and drafter capabilities
- Services: pipeline orchestration and trigger-surface operations
- DTOs: Data transfer objects for API serialization
"""

from helpdesk.triage.application.agents import (
    IClassifier,
    IDrafter,
    KeywordClassifier,
    LLMClassifier,
    TemplateDrafter,
    LLMDrafter,
)
from helpdesk.triage.application.services import (
    ITicketRepository,
    ISuggestionRepository,
    IArticleRepository,
    IConfigRepository,
    IAuditRepository,
    ITriageScheduler,
    TriageStores,
    AuditRecorder,
    KBRetriever,
    TriageOrchestrator,
    TriageService,
    TicketService,
    KnowledgeBaseService,
    ConfigService,
)
from helpdesk.triage.application.dto import (
    CreateTicketRequest,
    ReplyRequest,
    AssignRequest,
    TriageRequest,
    UpdateConfigRequest,
    CreateArticleRequest,
    TicketResponse,
    CreateTicketResponse,
    TicketListResponse,
    TriageAcceptedResponse,
    ArticleResponse,
    ArticleListResponse,
    SuggestionResponse,
    AuditEntryResponse,
    AuditTrailResponse,
    ConfigResponse,
)

__all__ = [
    # Agents
    "IClassifier",
    "IDrafter",
    "KeywordClassifier",
    "LLMClassifier",
    "TemplateDrafter",
    "LLMDrafter",
    # Repository Interfaces
    "ITicketRepository",
    "ISuggestionRepository",
    "IArticleRepository",
    "IConfigRepository",
    "IAuditRepository",
    "ITriageScheduler",
    # Services
    "TriageStores",
    "AuditRecorder",
    "KBRetriever",
    "TriageOrchestrator",
    "TriageService",
    "TicketService",
    "KnowledgeBaseService",
    "ConfigService",
    # DTOs
    "CreateTicketRequest",
    "ReplyRequest",
    "AssignRequest",
    "TriageRequest",
    "UpdateConfigRequest",
    "CreateArticleRequest",
    "TicketResponse",
    "CreateTicketResponse",
    "TicketListResponse",
    "TriageAcceptedResponse",
    "ArticleResponse",
    "ArticleListResponse",
    "SuggestionResponse",
    "AuditEntryResponse",
    "AuditTrailResponse",
    "ConfigResponse",
]
