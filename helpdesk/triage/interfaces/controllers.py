"""
Triage Controllers (API Routes)
================================

FastAPI routes for tickets and the triage agent.

Controllers delegate to application services. Triage always runs in the
background: these routes enqueue and return a correlation ID, and results
are read back through the suggestion and audit endpoints.
"""

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Query, status

from helpdesk.config import TicketCategory, TicketStatus
from helpdesk.triage.application import (
    TicketService, TriageService, KnowledgeBaseService,
    CreateTicketRequest, CreateTicketResponse,
    ReplyRequest, AssignRequest, TriageRequest,
    TicketResponse, TicketListResponse, TriageAcceptedResponse,
    SuggestionResponse, AuditEntryResponse, AuditTrailResponse,
)
from helpdesk.triage.interfaces.dependencies import (
    get_correlation_id, get_kb_service, get_ticket_service, get_triage_service
)
from helpdesk.triage.application.dto import TicketStatusStr
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

tickets_router = APIRouter(prefix="/tickets", tags=["Tickets"])
agent_router = APIRouter(prefix="/agent", tags=["Triage Agent"])


# ========== Example payloads for Swagger ==========

SUGGESTION_RESPONSE_EXAMPLE = {
    "id": "5b0f6a1e-3d1c-4c55-9a53-0d2a4f0e9b11",
    "ticket_id": "0c9d6a3e-8a57-4a8e-9a8e-3c1f4f2d7c21",
    "predicted_category": "billing",
    "article_ids": ["e2b1..."],
    "articles": [{"id": "e2b1...", "title": "How refunds work", "tags": ["billing", "refund"]}],
    "draft_reply": "Thank you for contacting our support team. ...",
    "confidence": 0.57,
    "auto_closed": False,
    "model_info": {"provider": "stub", "model": "deterministic-v1", "prompt_version": "1.0", "latency_ms": 0},
    "created_at": "2026-01-01T00:00:00Z"
}


# ========== Ticket Routes ==========

@tickets_router.post(
    "",
    response_model=CreateTicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket",
    description="""
    Create a ticket in status `open` and schedule its triage in the background.

    The response carries the correlation ID of the triage run; every audit
    entry written by that run shares it. The request never waits for triage.
    """
)
async def create_ticket(
    payload: CreateTicketRequest,
    service: TicketService = Depends(get_ticket_service)
):
    ticket, correlation_id = await service.create_ticket(
        title=payload.title,
        description=payload.description,
        category=TicketCategory(payload.category)
    )
    return CreateTicketResponse(
        ticket=TicketResponse.from_domain(ticket),
        correlation_id=correlation_id
    )


@tickets_router.get("", response_model=TicketListResponse, summary="List tickets")
async def list_tickets(
    status_filter: Optional[TicketStatusStr] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_tickets(
        status=TicketStatus(status_filter) if status_filter else None,
        limit=limit
    )
    return TicketListResponse(
        tickets=[TicketResponse.from_domain(ticket) for ticket in tickets],
        count=len(tickets)
    )


@tickets_router.get("/{ticket_id}", response_model=TicketResponse, summary="Get a ticket")
async def get_ticket(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    return TicketResponse.from_domain(await service.get_ticket(ticket_id))


@tickets_router.post("/{ticket_id}/reply", response_model=TicketResponse, summary="Reply to a ticket")
async def reply_to_ticket(
    ticket_id: str,
    payload: ReplyRequest,
    correlation_id: str = Depends(get_correlation_id),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.add_reply(
        ticket_id,
        content=payload.content,
        correlation_id=correlation_id,
        author_id=payload.author_id,
        status=TicketStatus(payload.status) if payload.status else None
    )
    return TicketResponse.from_domain(ticket)


@tickets_router.post("/{ticket_id}/assign", response_model=TicketResponse, summary="Assign a ticket")
async def assign_ticket(
    ticket_id: str,
    payload: AssignRequest,
    correlation_id: str = Depends(get_correlation_id),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.assign(ticket_id, payload.assignee_id, correlation_id)
    return TicketResponse.from_domain(ticket)


@tickets_router.get(
    "/{ticket_id}/audit",
    response_model=AuditTrailResponse,
    summary="Get the audit trail of a ticket",
    description="Newest entries first, at most 50."
)
async def get_audit_trail(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    entries = await service.get_audit_trail(ticket_id)
    return AuditTrailResponse(
        ticket_id=ticket_id,
        entries=[AuditEntryResponse.from_domain(entry) for entry in entries],
        count=len(entries)
    )


# ========== Agent Routes ==========

@agent_router.post(
    "/triage",
    response_model=TriageAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger a triage run",
    description="""
    Schedule a new triage run for an existing ticket.

    Each run creates a new suggestion and replaces the ticket's reference.
    Failures are reported through the audit trail (`TRIAGE_FAILED`), not
    through this response.
    """,
    responses={503: {"description": "Triage queue full or worker stopped"}}
)
async def trigger_triage(
    payload: TriageRequest,
    service: TriageService = Depends(get_triage_service)
):
    correlation_id = str(uuid4())
    service.start_triage(payload.ticket_id, correlation_id)
    logger.info(
        "Manual triage scheduled",
        extra={"ticket_id": payload.ticket_id, "correlation_id": correlation_id}
    )
    return TriageAcceptedResponse(ticket_id=payload.ticket_id, correlation_id=correlation_id)


@agent_router.get(
    "/suggestion/{ticket_id}",
    response_model=SuggestionResponse,
    summary="Get the current suggestion for a ticket",
    responses={
        200: {"content": {"application/json": {"example": SUGGESTION_RESPONSE_EXAMPLE}}},
        404: {"description": "No suggestion for this ticket"}
    }
)
async def get_suggestion(
    ticket_id: str,
    service: TriageService = Depends(get_triage_service),
    kb_service: KnowledgeBaseService = Depends(get_kb_service)
):
    suggestion = await service.get_suggestion(ticket_id)
    articles = await kb_service.get_articles(suggestion.article_ids)
    return SuggestionResponse.from_domain(suggestion, articles)
