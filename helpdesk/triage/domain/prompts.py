"""
Triage Prompts
==============

Prompt builders for the LLM-backed classifier and drafter.

All prompt text lives here so the prompt version recorded on suggestions
refers to one place.
"""

from typing import List, Sequence

from helpdesk.triage.domain.entities import Article


class ClassificationPromptBuilder:
    """Builds prompts for ticket classification."""

    SYSTEM_PROMPT = """You are a support ticket classifier.

Classify the ticket into exactly one category:
- billing: payment issues, refunds, invoices, charges
- tech: login problems, bugs, errors, crashes
- shipping: delivery, tracking, packages, orders
- other: general inquiries

Respond ONLY in JSON format:
{
    "category": "billing",
    "confidence": 0.85
}"""

    @classmethod
    def build_messages(cls, text: str) -> List[dict]:
        return [
            {"role": "system", "content": cls.SYSTEM_PROMPT},
            {"role": "user", "content": f"Ticket:\n{text}\n\nClassify this ticket (respond with JSON only):"}
        ]


class DraftPromptBuilder:
    """Builds prompts for reply drafting from retrieved articles."""

    SYSTEM_PROMPT = """You are a helpful customer support agent. Draft a professional, empathetic response to the customer's inquiry using the provided knowledge base articles as reference.

Guidelines:
- Be professional and empathetic
- Reference relevant articles by their number when applicable
- Keep responses concise but helpful
- End with an offer for further assistance
- Sign as "Support Team\""""

    CONTEXT_CHARS = 500

    @classmethod
    def build_context(cls, articles: Sequence[Article]) -> str:
        if not articles:
            return "(no articles available)"
        parts = []
        for i, article in enumerate(articles, 1):
            body = article.body[:cls.CONTEXT_CHARS]
            parts.append(f"[{i}] {article.title}\n{body}")
        return "\n\n".join(parts)

    @classmethod
    def build_messages(cls, text: str, articles: Sequence[Article]) -> List[dict]:
        return [
            {"role": "system", "content": cls.SYSTEM_PROMPT},
            {"role": "user", "content": f"""Customer inquiry: {text}

Available knowledge base articles:
{cls.build_context(articles)}

Please draft a response."""}
        ]
