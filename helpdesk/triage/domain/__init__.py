"""
Triage Domain Layer
===================

Domain layer for ticket triage module.

Contains:
- Entities: Ticket, Article, Suggestion, AuditEntry, stage results
- Value Objects: TriageConfig, ModelInfo, Decision, DecisionEngine
- Prompts: builders for the LLM-backed agents

This layer is framework-agnostic and contains pure business logic.
"""

from helpdesk.triage.domain.value_objects import (
    TriageConfig,
    ModelInfo,
    Decision,
    DecisionEngine,
)
from helpdesk.triage.domain.entities import (
    Reply,
    Ticket,
    Article,
    Suggestion,
    AuditEntry,
    ClassificationResult,
    DraftResult,
    MAX_CITED_ARTICLES,
)
from helpdesk.triage.domain.prompts import (
    ClassificationPromptBuilder,
    DraftPromptBuilder,
)

__all__ = [
    "TriageConfig",
    "ModelInfo",
    "Decision",
    "DecisionEngine",
    "Reply",
    "Ticket",
    "Article",
    "Suggestion",
    "AuditEntry",
    "ClassificationResult",
    "DraftResult",
    "MAX_CITED_ARTICLES",
    "ClassificationPromptBuilder",
    "DraftPromptBuilder",
]
