"""
Triage Value Objects
====================

Immutable value objects for the triage domain, plus the pure decision logic
that gates auto-closing.
"""

from dataclasses import dataclass

from helpdesk.config import DecisionReason


DEFAULT_AUTO_CLOSE_ENABLED = False
DEFAULT_CONFIDENCE_THRESHOLD = 0.78
DEFAULT_SLA_HOURS = 24


@dataclass(frozen=True)
class TriageConfig:
    """
    Operator-tunable triage configuration (the config singleton).

    The defaults apply in memory when no record exists; the pipeline never
    persists them.
    """
    auto_close_enabled: bool = DEFAULT_AUTO_CLOSE_ENABLED
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    sla_hours: int = DEFAULT_SLA_HOURS

    def __post_init__(self):
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be between 0 and 1")
        if self.sla_hours < 1:
            raise ValueError("sla_hours must be at least 1")

    def to_dict(self) -> dict:
        return {
            "auto_close_enabled": self.auto_close_enabled,
            "confidence_threshold": self.confidence_threshold,
            "sla_hours": self.sla_hours,
        }


@dataclass(frozen=True)
class ModelInfo:
    """Provenance of a suggestion."""
    provider: str = "stub"
    model: str = "deterministic-v1"
    prompt_version: str = "1.0"
    latency_ms: int = 0


@dataclass(frozen=True)
class Decision:
    """Outcome of the auto-close gate."""
    auto_close: bool
    reason: DecisionReason


class DecisionEngine:
    """
    Pure auto-close decision.

    Stateless: the configuration is passed on every call.
    """

    @staticmethod
    def decide(confidence: float, config: TriageConfig) -> Decision:
        """
        Decide whether a triaged ticket can be resolved without a human.

        Args:
            confidence: Classifier confidence for the run
            config: Configuration loaded for the run

        Returns:
            Decision with auto_close flag and the reason for audit
        """
        if not config.auto_close_enabled:
            return Decision(auto_close=False, reason=DecisionReason.AUTO_CLOSE_DISABLED)
        if confidence >= config.confidence_threshold:
            return Decision(auto_close=True, reason=DecisionReason.CONFIDENCE_ABOVE_THRESHOLD)
        return Decision(auto_close=False, reason=DecisionReason.LOW_CONFIDENCE)
