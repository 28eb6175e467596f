"""Tests for two-stage knowledge-base retrieval."""

import pytest

from helpdesk.config import TicketCategory
from helpdesk.core import RepositoryException
from helpdesk.triage.application import KBRetriever
from helpdesk.triage.infrastructure import InMemoryArticleRepository


class FailingArticleRepository(InMemoryArticleRepository):
    async def find_by_tag_published(self, tag, limit):
        raise RepositoryException("database unavailable")


class RecordingArticleRepository(InMemoryArticleRepository):
    def __init__(self):
        super().__init__()
        self.text_queries = []

    async def search_text_published(self, query, limit):
        self.text_queries.append(query)
        return await super().search_text_published(query, limit)


class TestKBRetriever:

    @pytest.mark.asyncio
    async def test_enough_tag_matches_skip_text_search(self, add_article):
        first = await add_article("Refund policy", "How refunds work", ["billing"])
        second = await add_article("Invoices", "Where to find invoices", ["billing"])
        await add_article("Refund timing", "Refund refund refund", ["shipping"])

        repo = RecordingArticleRepository()
        for article in (first, second):
            await repo.save(article)

        articles = await KBRetriever(repo).retrieve("refund please", TicketCategory.BILLING)

        assert {article.id for article in articles} == {first.id, second.id}
        assert repo.text_queries == []

    @pytest.mark.asyncio
    async def test_single_tag_match_is_supplemented_by_text_search(self, stores, add_article):
        tagged = await add_article("Billing overview", "General billing notes", ["billing"])
        refund = await add_article("Refund timing", "A refund takes five days", ["faq"])

        articles = await KBRetriever(stores.articles).retrieve(
            "charged twice, refund me", TicketCategory.BILLING
        )

        assert [article.id for article in articles] == [tagged.id, refund.id]

    @pytest.mark.asyncio
    async def test_text_hits_already_tagged_are_not_duplicated(self, stores, add_article):
        tagged = await add_article("Refund policy", "Refund rules", ["billing"])

        articles = await KBRetriever(stores.articles).retrieve("refund", TicketCategory.BILLING)

        assert [article.id for article in articles] == [tagged.id]

    @pytest.mark.asyncio
    async def test_result_is_capped(self, stores, add_article):
        for index in range(5):
            await add_article(f"Billing {index}", "billing help", ["billing"])

        articles = await KBRetriever(stores.articles).retrieve("billing", TicketCategory.BILLING)

        assert len(articles) == 3
        assert len({article.id for article in articles}) == 3

    @pytest.mark.asyncio
    async def test_draft_articles_are_never_returned(self, stores, add_article):
        await add_article("Refund draft", "refund refund", ["billing"], published=False)

        articles = await KBRetriever(stores.articles).retrieve("refund", TicketCategory.BILLING)

        assert articles == []

    @pytest.mark.asyncio
    async def test_nothing_found(self, stores):
        assert await KBRetriever(stores.articles).retrieve("hello", TicketCategory.OTHER) == []

    @pytest.mark.asyncio
    async def test_lookup_failure_degrades_to_empty(self):
        articles = await KBRetriever(FailingArticleRepository()).retrieve("refund", TicketCategory.BILLING)
        assert articles == []
