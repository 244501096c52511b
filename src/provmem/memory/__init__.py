"""Memory domain — fact construction and the persistent store boundary."""

from __future__ import annotations

import time
from collections.abc import Iterable
from collections.abc import Sequence

from provmem.config import DecayConfig
from provmem.engine.confidence import ConfidenceModel
from provmem.memory.base import FactStore
from provmem.memory.local import InMemoryFactStore
from provmem.memory.store import RedisFactStore
from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.models.facts import Lifecycle
from provmem.models.facts import Provenance
from provmem.models.facts import ProvenanceKind

__all__ = [
    "FactStore",
    "InMemoryFactStore",
    "RedisFactStore",
    "create_fact",
]


def create_fact(
    content: str,
    kind: ProvenanceKind | str,
    category: FactCategory | str,
    *,
    actor: str | None = None,
    context: str | None = None,
    session_id: str | None = None,
    links: Iterable[str] = (),
    tags: Sequence[str] = (),
    summary: str | None = None,
    decay_rate: float | None = None,
    protected: bool = False,
    embedding: Sequence[float] | None = None,
    now: float | None = None,
    confidence_model: ConfidenceModel | None = None,
    decay_config: DecayConfig | None = None,
) -> Fact:
    """Factory for creating a Fact with all domain invariants.

    Encapsulates initial trust assessment from provenance and the
    category's default decay rate.  An unknown provenance kind or
    category raises ``ValueError``.
    """
    stamp = time.time() if now is None else now
    model = confidence_model or ConfidenceModel()
    decay = decay_config or DecayConfig()
    category = FactCategory(category)

    provenance = Provenance(
        kind=ProvenanceKind(kind),
        actor=actor or None,
        context=context or None,
        learned_at=stamp,
        session_id=session_id,
    )
    return Fact(
        content=content,
        summary=summary,
        provenance=provenance,
        trust=model.assess(provenance),
        category=category,
        links=frozenset(links),
        tags=list(tags),
        lifecycle=Lifecycle(
            created_at=stamp,
            updated_at=stamp,
            last_used_at=stamp,
            use_count=0,
        ),
        decay_rate=(
            decay.decay_rate_for(category.value) if decay_rate is None else decay_rate
        ),
        relevance=1.0,
        protected=protected,
        embedding=list(embedding) if embedding is not None else None,
    )
