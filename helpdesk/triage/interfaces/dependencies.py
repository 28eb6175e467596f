"""
Triage Route Dependencies
=========================

FastAPI dependencies resolving services from the runtime on app.state.
"""

from fastapi import HTTPException, Request

from helpdesk.triage.application import (
    ConfigService, KnowledgeBaseService, TicketService, TriageService
)
from helpdesk.triage.infrastructure import TriageRuntime


def get_runtime(request: Request) -> TriageRuntime:
    """Get the triage runtime built in the application lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Triage runtime not initialized")
    return runtime


def get_correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def get_ticket_service(request: Request) -> TicketService:
    return get_runtime(request).tickets


def get_triage_service(request: Request) -> TriageService:
    return get_runtime(request).triage


def get_kb_service(request: Request) -> KnowledgeBaseService:
    return get_runtime(request).knowledge_base


def get_config_service(request: Request) -> ConfigService:
    return get_runtime(request).config
