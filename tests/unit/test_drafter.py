"""Tests for the template and LLM-backed drafters."""

import pytest

from helpdesk.config import ArticleStatus
from helpdesk.core import LLMException
from helpdesk.infrastructure.llm import ChatCompletionResult, ILLMClient, MockLLMClient
from helpdesk.triage.application import LLMDrafter, TemplateDrafter
from helpdesk.triage.domain import Article


def _article(title, body="Short body.", tags=("billing",)):
    return Article.create(title, body, list(tags), ArticleStatus.PUBLISHED)


class FailingLLMClient(ILLMClient):
    provider = "fake"
    model = "fake-model"

    async def chat_completion(self, messages, temperature=0.3, max_tokens=500, operation="chat_completion"):
        raise LLMException("upstream unavailable")


class BlankLLMClient(ILLMClient):
    provider = "fake"
    model = "fake-model"

    async def chat_completion(self, messages, temperature=0.3, max_tokens=500, operation="chat_completion"):
        return ChatCompletionResult("   ", self.model, 10, 0, 1)


class TestTemplateDrafter:

    @pytest.mark.asyncio
    async def test_no_articles_gives_acknowledgement(self):
        result = await TemplateDrafter().draft("anything", [])
        assert result.draft_reply == (
            "Thank you for contacting our support team. "
            "We've received your request and will review it shortly. "
            "Our team will get back to you with a detailed response."
            "\n\nBest regards,\nSupport Team"
        )
        assert result.citations == []
        assert not result.has_citations
        assert "1." not in result.draft_reply

    @pytest.mark.asyncio
    async def test_articles_are_numbered_in_order(self):
        articles = [_article("Refund policy"), _article("Invoices explained"), _article("Payment methods")]
        result = await TemplateDrafter().draft("refund", articles)

        assert result.citations == [article.id for article in articles]
        reply = result.draft_reply
        assert reply.startswith(
            "Thank you for contacting our support team. "
            "Based on your inquiry, here are some resources that might help:\n\n"
        )
        assert reply.index("1. Refund policy") < reply.index("2. Invoices explained") < reply.index("3. Payment methods")
        assert "4." not in reply
        assert "If these resources don't fully address your concern" in reply
        assert reply.endswith("\n\nBest regards,\nSupport Team")

    @pytest.mark.asyncio
    async def test_entry_layout(self):
        article = _article("Refund policy", body="Refunds take 5 days.")
        result = await TemplateDrafter().draft("refund", [article])
        assert "1. Refund policy\n   Refunds take 5 days.\n\n" in result.draft_reply

    def test_snippet_truncation(self):
        assert TemplateDrafter.snippet("x" * 150) == "x" * 150
        assert TemplateDrafter.snippet("x" * 151) == "x" * 150 + "..."

    @pytest.mark.asyncio
    async def test_long_body_is_truncated_in_reply(self):
        article = _article("Long read", body="a" * 400)
        result = await TemplateDrafter().draft("text", [article])
        assert "a" * 150 + "..." in result.draft_reply
        assert "a" * 151 not in result.draft_reply


class TestLLMDrafter:

    @pytest.mark.asyncio
    async def test_uses_model_reply_and_article_citations(self):
        articles = [_article("Refund policy"), _article("Invoices explained")]
        result = await LLMDrafter(MockLLMClient()).draft("refund please", articles)
        assert result.draft_reply.startswith("Thank you for reaching out.")
        assert result.citations == [article.id for article in articles]
        assert result.provider == "mock"

    @pytest.mark.asyncio
    async def test_upstream_failure_falls_back_to_template(self):
        articles = [_article("Refund policy")]
        result = await LLMDrafter(FailingLLMClient()).draft("refund please", articles)
        assert "1. Refund policy" in result.draft_reply
        assert result.citations == [articles[0].id]
        assert result.provider == "stub"

    @pytest.mark.asyncio
    async def test_blank_reply_falls_back_to_template(self):
        result = await LLMDrafter(BlankLLMClient()).draft("hello", [])
        assert result.draft_reply.startswith("Thank you for contacting our support team.")
        assert result.provider == "stub"
