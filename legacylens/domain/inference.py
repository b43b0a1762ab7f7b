"""
Shapes expected back from structured inference calls.
"""

from pydantic import Field

from legacylens.domain.job import DomainModel


class IntentExtraction(DomainModel):
    """Inferred business intent of one module."""

    intent: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    requires_human_review: bool
    domain_hints: list[str] = Field(default_factory=list)


class DriftCheck(DomainModel):
    """Whether refactored code still matches the original intent."""

    drifted: bool
    explanation: str = ""
