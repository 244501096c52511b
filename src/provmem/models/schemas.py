"""Input and result models for the engines and the MCP interface.

Engine results are plain pydantic models so callers can serialize them
directly.  The ``*Response`` / ``*Result`` envelopes at the bottom shape
MCP tool output; FastMCP v2 serializes them automatically.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator

from provmem.models.facts import DecayTier
from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.models.facts import ProvenanceKind

_DEFAULT_LIMIT = 10
_MAX_LIMIT = 100

# ---------------------------------------------------------------------------
# Recall
# ---------------------------------------------------------------------------


class RecallQuery(BaseModel):
    """A recall request.

    Out-of-range numbers are clamped rather than rejected: thresholds to
    ``[0, 1]``, a non-positive ``limit`` to the default, an oversized one
    to the maximum.
    """

    text: str = Field(
        description="Natural language query.",
    )
    context: str | None = Field(
        default=None,
        description="What the agent is currently doing; boosts matching contexts.",
    )
    entity_filter: list[str] = Field(
        default_factory=list,
        description="Entities whose facts join the candidate set with entity=1.0.",
    )
    category_filter: list[FactCategory] = Field(
        default_factory=list,
        description="Categories whose facts join the candidate set.",
    )
    min_trust: float = Field(default=0.3)
    min_relevance: float = Field(default=0.1)
    limit: int = Field(default=_DEFAULT_LIMIT)
    include_archived: bool = Field(
        default=False,
        description="Keep facts whose relevance fell below min_relevance.",
    )

    @field_validator("min_trust", "min_relevance")
    @classmethod
    def _clamp_unit(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        if value < 1:
            return _DEFAULT_LIMIT
        return min(value, _MAX_LIMIT)


class ChannelScores(BaseModel):
    """Per-channel match signals for one candidate."""

    lexical: float = 0.0
    semantic: float = 0.0
    entity: float = 0.0


class RecallResult(BaseModel):
    """One ranked recall hit."""

    fact: Fact
    match_score: float
    final_score: float
    scores: ChannelScores = Field(default_factory=ChannelScores)


# ---------------------------------------------------------------------------
# Decay
# ---------------------------------------------------------------------------


class SweepResult(BaseModel):
    """Outcome of one decay sweep."""

    updated_count: int = 0
    archived_count: int = 0
    scanned_count: int = 0


# ---------------------------------------------------------------------------
# Corroboration / contradiction / verification
# ---------------------------------------------------------------------------


class CorroborationResult(BaseModel):
    """Trust change applied to an existing fact by an agreeing source."""

    fact_id: str
    old_score: float
    new_score: float
    reason: str


class FactSnapshot(BaseModel):
    """Compact view of a fact inside a contradiction pair."""

    id: str
    summary: str
    score: float


class ContradictionResult(BaseModel):
    """A pair of related facts that appear to make opposing claims."""

    fact_a: FactSnapshot
    fact_b: FactSnapshot
    similarity: float
    reason: str


class VerificationResult(BaseModel):
    """Outcome of searching for evidence supporting one fact."""

    status: Literal["ok", "not_found"] = "ok"
    fact_id: str
    verified: bool = False
    evidence: list[str] = Field(default_factory=list)
    new_score: float = 0.0


# ---------------------------------------------------------------------------
# Reflection
# ---------------------------------------------------------------------------


class ReflectionReport(BaseModel):
    """Memory health report produced by one reflection cycle."""

    timestamp: float
    decay: SweepResult
    duplicates_found: int = 0
    contradictions_found: int = 0
    weakly_attributed: int = 0
    average_trust: float = 0.0
    average_relevance: float = 0.0
    health_score: int = 100
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# MCP envelopes
# ---------------------------------------------------------------------------


class RememberInput(BaseModel):
    """Input schema for the remember tool."""

    content: str = Field(
        min_length=1,
        max_length=10_000,
        description="The fact, observation or preference as text.",
    )
    kind: ProvenanceKind = Field(
        description="How the fact was learned.",
    )
    category: FactCategory = FactCategory.fact
    actor: str | None = Field(
        default=None,
        description="Who or what supplied the fact.",
    )
    context: str | None = Field(
        default=None,
        description="Situation in which the fact was learned.",
    )
    session_id: str | None = None
    links: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    summary: str | None = None
    protected: bool = False

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class RememberResult(BaseModel):
    """Output of the remember tool."""

    status: Literal["accepted", "rejected"] = "accepted"
    error_code: str | None = None
    message: str | None = None
    fact_id: str = ""
    trust_score: float = 0.0
    rationale: list[str] = Field(default_factory=list)
    corroborations: list[CorroborationResult] = Field(default_factory=list)


class RecallMeta(BaseModel):
    """Metadata about a recall call."""

    query: str
    returned: int = 0
    limit: int = _DEFAULT_LIMIT
    retrieval_ms: int = 0


class RecallResponse(BaseModel):
    """Output of the recall, quick_recall and entity_recall tools."""

    status: Literal["ok", "error"] = "ok"
    error_code: str | None = None
    message: str | None = None
    results: list[RecallResult] = Field(default_factory=list)
    meta: RecallMeta


class ContradictionScanResult(BaseModel):
    """Output of the find_contradictions tool."""

    status: Literal["ok", "error"] = "ok"
    contradictions: list[ContradictionResult] = Field(default_factory=list)


class TierResult(BaseModel):
    """Output of the decay_tier tool."""

    status: Literal["ok", "not_found"] = "ok"
    fact_id: str
    tier: DecayTier | None = None
    relevance: float | None = None


class UsageResult(BaseModel):
    """Output of the mark_used tool."""

    status: Literal["ok", "not_found"] = "ok"
    fact_id: str
    use_count: int = 0
    last_used_at: float | None = None
