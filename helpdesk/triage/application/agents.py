"""
Triage Agents
=============

Classifier and drafter capabilities.

Each capability has a deterministic implementation (the reference path,
used by default and in tests) and an LLM-backed implementation that falls
back to the deterministic one on any upstream failure.
"""

import json
import time
from decimal import Decimal, ROUND_HALF_UP
from abc import ABC, abstractmethod
from typing import Dict, Sequence, Tuple

from helpdesk.config import TicketCategory
from helpdesk.core import LLMException
from helpdesk.infrastructure.llm import ILLMClient
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.domain import (
    Article,
    ClassificationResult,
    DraftResult,
    ClassificationPromptBuilder,
    DraftPromptBuilder,
)

logger = get_logger(__name__)


STUB_PROVIDER = "stub"
STUB_MODEL = "deterministic-v1"

CONFIDENCE_FLOOR = 0.3
CONFIDENCE_CEILING = 0.95
CONFIDENCE_STEP = Decimal("0.01")
MIN_WORD_COUNT = 5
SNIPPET_CHARS = 150

# Scan order is the tie-break: an earlier category keeps the lead on equal counts.
CATEGORY_KEYWORDS: Tuple[Tuple[TicketCategory, Tuple[str, ...]], ...] = (
    (TicketCategory.BILLING, ("refund", "invoice", "payment", "charge", "billing", "money", "cost", "price")),
    (TicketCategory.TECH, ("error", "bug", "crash", "stack", "login", "password", "technical", "broken")),
    (TicketCategory.SHIPPING, ("delivery", "shipment", "package", "tracking", "shipping", "order")),
)


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def _clamp_confidence(value: float) -> float:
    """Clamp to the confidence band and round half up to 2 places."""
    clamped = min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, value))
    # Decimal(float) is the exact binary value, so 0.625 rounds up and 1.005 does not
    return float(Decimal(clamped).quantize(CONFIDENCE_STEP, rounding=ROUND_HALF_UP))


# ========== Classifier ==========

class IClassifier(ABC):
    """Maps raw ticket text to a category and a confidence in [0, 1]."""

    provider: str = STUB_PROVIDER
    model: str = STUB_MODEL

    @abstractmethod
    async def classify(self, text: str) -> ClassificationResult:
        """Classify ticket text. Must not raise under normal operation."""


class KeywordClassifier(IClassifier):
    """
    Deterministic keyword classifier.

    Counts substring hits per keyword set and picks the category with the
    strictly highest count, scanning billing, tech, shipping in that order.
    """

    @staticmethod
    def count_matches(text: str) -> Dict[TicketCategory, int]:
        lowered = text.lower()
        return {
            category: sum(1 for keyword in keywords if keyword in lowered)
            for category, keywords in CATEGORY_KEYWORDS
        }

    @classmethod
    def score(cls, text: str) -> Tuple[TicketCategory, float]:
        """Pure scoring step: (category, confidence) for the given text."""
        matches = cls.count_matches(text)

        category = TicketCategory.OTHER
        best = 0
        for candidate, _ in CATEGORY_KEYWORDS:
            if matches[candidate] > best:
                category = candidate
                best = matches[candidate]

        word_count = len(text.split())
        confidence = _clamp_confidence(best * 2 / max(word_count, MIN_WORD_COUNT))
        return category, confidence

    async def classify(self, text: str) -> ClassificationResult:
        start_time = time.perf_counter()
        category, confidence = self.score(text)
        return ClassificationResult(
            category=category,
            confidence=confidence,
            latency_ms=_elapsed_ms(start_time),
            provider=self.provider,
            model=self.model
        )


class LLMClassifier(IClassifier):
    """
    LLM-backed classifier.

    Any failure (transport, empty answer, unparseable JSON, unknown
    category) falls back to the deterministic classifier.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        fallback: IClassifier | None = None,
        temperature: float = 0.1,
        max_tokens: int = 100
    ):
        self._llm = llm_client
        self._fallback = fallback or KeywordClassifier()
        self._temperature = temperature
        self._max_tokens = max_tokens
        self.provider = llm_client.provider
        self.model = llm_client.model

    async def classify(self, text: str) -> ClassificationResult:
        start_time = time.perf_counter()
        try:
            response = await self._llm.chat_completion(
                messages=ClassificationPromptBuilder.build_messages(text),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                operation="classification"
            )
            category, confidence = self._parse(response.content)
        except Exception as e:
            logger.warning(
                "LLM classification failed, using keyword classifier",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return await self._fallback.classify(text)

        return ClassificationResult(
            category=category,
            confidence=confidence,
            latency_ms=_elapsed_ms(start_time),
            provider=self.provider,
            model=response.model
        )

    @staticmethod
    def _parse(content: str) -> Tuple[TicketCategory, float]:
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        try:
            data = json.loads(content)
            category = TicketCategory(str(data["category"]).strip().lower())
            confidence = float(data["confidence"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise LLMException(f"Failed to parse classification response: {e}")
        return category, _clamp_confidence(confidence)


# ========== Drafter ==========

class IDrafter(ABC):
    """Maps ticket text and retrieved articles to a reply and its citations."""

    provider: str = STUB_PROVIDER
    model: str = STUB_MODEL

    @abstractmethod
    async def draft(self, text: str, articles: Sequence[Article]) -> DraftResult:
        """Draft a non-empty reply; citations follow the article order."""


class TemplateDrafter(IDrafter):
    """Deterministic template drafter."""

    GREETING = "Thank you for contacting our support team. "
    ACKNOWLEDGEMENT = (
        "We've received your request and will review it shortly. "
        "Our team will get back to you with a detailed response."
    )
    RESOURCES_INTRO = "Based on your inquiry, here are some resources that might help:\n\n"
    CLOSING = (
        "If these resources don't fully address your concern, please let us know "
        "and we'll provide additional assistance."
    )
    SIGNATURE = "\n\nBest regards,\nSupport Team"

    @staticmethod
    def snippet(body: str) -> str:
        if len(body) > SNIPPET_CHARS:
            return body[:SNIPPET_CHARS] + "..."
        return body

    @classmethod
    def render(cls, articles: Sequence[Article]) -> str:
        if not articles:
            return cls.GREETING + cls.ACKNOWLEDGEMENT + cls.SIGNATURE

        lines = [cls.GREETING + cls.RESOURCES_INTRO]
        for index, article in enumerate(articles, 1):
            lines.append(f"{index}. {article.title}\n   {cls.snippet(article.body)}\n\n")
        lines.append(cls.CLOSING)
        return "".join(lines) + cls.SIGNATURE

    async def draft(self, text: str, articles: Sequence[Article]) -> DraftResult:
        start_time = time.perf_counter()
        return DraftResult(
            draft_reply=self.render(articles),
            citations=[article.id for article in articles],
            latency_ms=_elapsed_ms(start_time),
            provider=self.provider,
            model=self.model
        )


class LLMDrafter(IDrafter):
    """
    LLM-backed drafter.

    Only the reply body comes from the model; citations are always the ids
    of the articles that were given to it.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        fallback: IDrafter | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ):
        self._llm = llm_client
        self._fallback = fallback or TemplateDrafter()
        self._temperature = temperature
        self._max_tokens = max_tokens
        self.provider = llm_client.provider
        self.model = llm_client.model

    async def draft(self, text: str, articles: Sequence[Article]) -> DraftResult:
        start_time = time.perf_counter()
        try:
            response = await self._llm.chat_completion(
                messages=DraftPromptBuilder.build_messages(text, articles),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                operation="draft"
            )
            reply = (response.content or "").strip()
            if not reply:
                raise LLMException("Draft response was empty")
        except Exception as e:
            logger.warning(
                "LLM drafting failed, using template drafter",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return await self._fallback.draft(text, articles)

        return DraftResult(
            draft_reply=reply,
            citations=[article.id for article in articles],
            latency_ms=_elapsed_ms(start_time),
            provider=self.provider,
            model=response.model
        )
