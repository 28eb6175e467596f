"""
In-Memory Repositories
======================

Process-local implementations of the triage repository interfaces.

Used when STORAGE_BACKEND=memory (local runs, tests). Entities are copied
on the way in and out so callers never share mutable state with the store.
Text search ranks articles by query-term frequency in title and body.
"""

import copy
import re
from typing import Dict, List, Optional

from helpdesk.config import TicketStatus
from helpdesk.triage.application import (
    ITicketRepository,
    ISuggestionRepository,
    IArticleRepository,
    IConfigRepository,
    IAuditRepository,
)
from helpdesk.triage.domain import Article, AuditEntry, Suggestion, Ticket, TriageConfig


_SEARCH_TERM = re.compile(r"\w+")


class InMemoryTicketRepository(ITicketRepository):
    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}

    async def find_by_id(self, ticket_id: str) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket else None

    async def save(self, ticket: Ticket) -> Ticket:
        self._tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    async def list(self, status: Optional[TicketStatus] = None, limit: int = 50) -> List[Ticket]:
        tickets = [
            ticket for ticket in self._tickets.values()
            if status is None or ticket.status == status
        ]
        tickets.sort(key=lambda ticket: ticket.updated_at, reverse=True)
        return [copy.deepcopy(ticket) for ticket in tickets[:limit]]


class InMemorySuggestionRepository(ISuggestionRepository):
    def __init__(self):
        self._suggestions: Dict[str, Suggestion] = {}

    async def save(self, suggestion: Suggestion) -> Suggestion:
        self._suggestions[suggestion.id] = copy.deepcopy(suggestion)
        return suggestion

    async def find_by_id(self, suggestion_id: str) -> Optional[Suggestion]:
        suggestion = self._suggestions.get(suggestion_id)
        return copy.deepcopy(suggestion) if suggestion else None

    async def find_latest_by_ticket(self, ticket_id: str) -> Optional[Suggestion]:
        # dicts keep insertion order, so the last match is the newest on equal timestamps
        latest = None
        for suggestion in self._suggestions.values():
            if suggestion.ticket_id == ticket_id:
                if latest is None or suggestion.created_at >= latest.created_at:
                    latest = suggestion
        return copy.deepcopy(latest) if latest else None

    def count_for_ticket(self, ticket_id: str) -> int:
        return sum(1 for suggestion in self._suggestions.values() if suggestion.ticket_id == ticket_id)


class InMemoryArticleRepository(IArticleRepository):
    """In-memory knowledge base with term-frequency ranking."""

    def __init__(self):
        self._articles: Dict[str, Article] = {}

    def _published(self) -> List[Article]:
        articles = [article for article in self._articles.values() if article.is_published]
        articles.sort(key=lambda article: article.created_at, reverse=True)
        return articles

    async def find_by_tag_published(self, tag: str, limit: int) -> List[Article]:
        tag = tag.strip().lower()
        matches = [article for article in self._published() if tag in article.tags]
        return [copy.deepcopy(article) for article in matches[:limit]]

    async def search_text_published(self, query: str, limit: int) -> List[Article]:
        terms = set(_SEARCH_TERM.findall(query.lower()))
        if not terms:
            return []

        scored = []
        for article in self._published():
            words = _SEARCH_TERM.findall(f"{article.title} {article.body}".lower())
            score = sum(1 for word in words if word in terms)
            if score > 0:
                scored.append((score, article))

        # sort is stable: equal scores keep newest-first order
        scored.sort(key=lambda item: item[0], reverse=True)
        return [copy.deepcopy(article) for _, article in scored[:limit]]

    async def list_published(self, limit: int) -> List[Article]:
        return [copy.deepcopy(article) for article in self._published()[:limit]]

    async def save(self, article: Article) -> Article:
        self._articles[article.id] = copy.deepcopy(article)
        return article

    async def find_by_id(self, article_id: str) -> Optional[Article]:
        article = self._articles.get(article_id)
        return copy.deepcopy(article) if article else None


class InMemoryConfigRepository(IConfigRepository):
    def __init__(self, config: Optional[TriageConfig] = None):
        self._config = config

    async def find_singleton(self) -> Optional[TriageConfig]:
        return self._config

    async def save(self, config: TriageConfig) -> TriageConfig:
        self._config = config
        return config


class InMemoryAuditRepository(IAuditRepository):
    def __init__(self):
        self._entries: List[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> AuditEntry:
        self._entries.append(entry)
        return entry

    async def find_by_ticket(
        self,
        ticket_id: str,
        newest_first: bool = True,
        limit: Optional[int] = None
    ) -> List[AuditEntry]:
        entries = [entry for entry in self._entries if entry.ticket_id == ticket_id]
        if newest_first:
            entries.reverse()
        if limit is not None:
            entries = entries[:limit]
        return entries
