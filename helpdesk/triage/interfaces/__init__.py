"""
Triage Interfaces Layer
========================

Interface adapters (controllers) for ticket triage module.

Contains:
- Controllers: ticket and agent routes
- Admin: knowledge-base and configuration routes
"""

from helpdesk.triage.interfaces.controllers import tickets_router, agent_router
from helpdesk.triage.interfaces.admin import kb_router, config_router

__all__ = ["tickets_router", "agent_router", "kb_router", "config_router"]
