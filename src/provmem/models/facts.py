"""Pydantic models for attributed facts.

A ``Fact`` is the unit of memory: free-text content that always carries
a ``Provenance`` (how it was learned) and a ``Trust`` record (how much it
is believed).  Relevance is tracked separately from trust and is only
touched by the decay engine.

Timestamps are Unix epoch seconds.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

from provmem.errors import ImmutableFieldError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProvenanceKind(str, Enum):
    """How a fact was learned."""

    experienced = "experienced"
    observed = "observed"
    told = "told"
    read = "read"
    inferred = "inferred"


class FactCategory(str, Enum):
    """Closed set of fact categories; drives the default decay rate."""

    fact = "fact"
    event = "event"
    opinion = "opinion"
    preference = "preference"
    procedure = "procedure"
    relationship = "relationship"
    observation = "observation"


class DecayTier(str, Enum):
    """Derived recency-of-use classification (never persisted)."""

    hot = "hot"
    warm = "warm"
    cold = "cold"


IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "provenance", "category"})


def _new_id() -> str:
    return f"fact_{uuid.uuid4().hex}"


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class Provenance(BaseModel):
    """Attribution of a fact.  Mandatory and immutable."""

    model_config = {"frozen": True}

    kind: ProvenanceKind = Field(
        description="How the fact was learned.",
    )
    actor: str | None = Field(
        default=None,
        description="Who told / wrote / was observed, when known.",
    )
    context: str | None = Field(
        default=None,
        description="Where or how the fact was learned (conversation, URL, file).",
    )
    learned_at: float = Field(
        default_factory=time.time,
        description="Unix epoch when the fact was learned.",
    )
    session_id: str | None = Field(
        default=None,
        description="Session in which the fact was learned.",
    )


class Trust(BaseModel):
    """Computed reliability of a fact, with its rationale trail."""

    score: float = Field(
        ge=0.0,
        le=1.0,
        description="Reliability score in [0, 1].",
    )
    rationale: list[str] = Field(
        default_factory=list,
        description="Ordered human-readable reasons for the score.",
    )
    last_confirmed: float | None = Field(
        default=None,
        description="Unix epoch of the last corroboration or verification.",
    )
    support_count: int = Field(
        default=0,
        ge=0,
        description="Number of corroborations received.",
    )
    conflict_count: int = Field(
        default=0,
        ge=0,
        description="Number of contradictions flagged. Informational only.",
    )


class Lifecycle(BaseModel):
    """Creation and usage bookkeeping."""

    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    last_used_at: float = Field(default_factory=time.time)
    use_count: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Fact
# ---------------------------------------------------------------------------


class Fact(BaseModel):
    """A structured, attributed unit of stored knowledge."""

    id: str = Field(
        default_factory=_new_id,
        description="Opaque unique identifier, never reused.",
    )
    content: str = Field(
        min_length=1,
        description="The thing remembered, as free text.",
    )
    summary: str | None = Field(
        default=None,
        description="Short form for listings; weighted lower by lexical search.",
    )
    provenance: Provenance
    trust: Trust
    category: FactCategory
    links: frozenset[str] = Field(
        default_factory=frozenset,
        description="Linked entity identifiers.",
    )
    tags: list[str] = Field(default_factory=list)
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    decay_rate: float = Field(
        ge=0.0,
        le=1.0,
        description="0 = permanent, 1 = ephemeral.",
    )
    relevance: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Time/usage-decayed importance, independent of trust.",
    )
    protected: bool = Field(
        default=False,
        description="Protected facts are exempt from decay.",
    )
    embedding: list[float] | None = Field(
        default=None,
        description="Externally supplied similarity vector.",
    )

    @field_validator("links", mode="before")
    @classmethod
    def _normalize_links(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        return frozenset(str(v).strip() for v in value if str(v).strip())

    @model_validator(mode="before")
    @classmethod
    def _protected_facts_stay_relevant(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("protected"):
            data = {**data, "relevance": 1.0}
        return data

    @property
    def display_text(self) -> str:
        return self.summary or self.content[:60]

    def with_changes(self, **changes: Any) -> Fact:
        """Return a re-validated copy with *changes* applied.

        Raises ``ImmutableFieldError`` when a change targets an immutable
        field with a different value, and ``ValueError`` for unknown fields.
        """
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            msg = f"Unknown fact fields: {sorted(unknown)}"
            raise ValueError(msg)
        for name in IMMUTABLE_FIELDS & set(changes):
            if changes[name] != getattr(self, name):
                msg = f"Fact field {name!r} is immutable"
                raise ImmutableFieldError(msg)

        data = self.model_dump()
        for name, value in changes.items():
            # model_copy(update=...) skips validation; force a full pass
            data[name] = value.model_dump() if isinstance(value, BaseModel) else value
        return type(self).model_validate(data)
