"""Narrow persistence boundary used by the scoring engines.

Engines only see the ``FactStore`` protocol; storage internals (Redis
keys, dicts) never leak into scoring code.  Multi-fact writes go through
``update_facts``, which is all-or-nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.text import keyword_tokens

FactChanges = Mapping[str, Any]


@runtime_checkable
class FactStore(Protocol):
    """Transactional CRUD and search over facts."""

    async def create_fact(self, fact: Fact) -> str:
        """Persist a new fact and return its id."""

    async def get_fact(self, fact_id: str) -> Fact | None:
        """Return the fact, or ``None`` when the id is unknown."""

    async def update_fact(self, fact_id: str, changes: FactChanges) -> Fact | None:
        """Apply partial *changes*; ``None`` when the id is unknown."""

    async def update_facts(self, changes: Mapping[str, FactChanges]) -> int:
        """Apply several partial updates atomically; return how many were written."""

    async def delete_fact(self, fact_id: str) -> bool:
        """Hard-delete a fact; ``False`` when the id is unknown."""

    async def search_by_text(self, text: str, limit: int = 10) -> list[Fact]:
        """Facts sharing at least one keyword with *text*."""

    async def search_by_category(
        self, category: FactCategory | str, limit: int = 20
    ) -> list[Fact]:
        """Facts in *category*."""

    async def facts_for_entity(self, entity_id: str, limit: int = 20) -> list[Fact]:
        """Facts linked to *entity_id*."""

    async def all_facts(self, limit: int | None = None) -> list[Fact]:
        """All facts, newest first."""

    async def all_embeddings(self) -> list[tuple[str, list[float]]]:
        """``(fact_id, embedding)`` for every fact that carries one."""

    async def mark_used(self, fact_id: str) -> Fact | None:
        """Record one use: bump ``use_count`` and ``last_used_at``."""


def apply_changes(fact: Fact, changes: FactChanges, now: float) -> Fact:
    """Validate *changes* against *fact* and stamp ``updated_at``."""
    if "lifecycle" not in changes:
        lifecycle = fact.lifecycle.model_copy(update={"updated_at": now})
        changes = {**changes, "lifecycle": lifecycle}
    return fact.with_changes(**changes)


def used_changes(fact: Fact, now: float) -> dict[str, Any]:
    lifecycle = fact.lifecycle.model_copy(
        update={
            "last_used_at": now,
            "updated_at": now,
            "use_count": fact.lifecycle.use_count + 1,
        }
    )
    return {"lifecycle": lifecycle}


def rank_for_search(facts: Sequence[Fact], limit: int | None) -> list[Fact]:
    """Order by relevance desc, then newest first, and truncate."""
    ordered = sorted(
        facts,
        key=lambda f: (f.relevance, f.lifecycle.created_at),
        reverse=True,
    )
    if limit is None:
        return ordered
    return ordered[: max(limit, 0)]


def rank_text_hits(
    facts: Sequence[Fact], words: set[str], limit: int | None
) -> list[Fact]:
    """Order by matched query keywords, then relevance, then recency.

    A fact sharing only one common word with the query must not push out
    one that matches every word.
    """
    ordered = sorted(
        facts,
        key=lambda f: (
            len(words & index_keywords(f)),
            f.relevance,
            f.lifecycle.created_at,
        ),
        reverse=True,
    )
    if limit is None:
        return ordered
    return ordered[: max(limit, 0)]


def index_keywords(fact: Fact) -> set[str]:
    """Keywords a fact is indexed under for text search."""
    text = fact.content if not fact.summary else f"{fact.content} {fact.summary}"
    return keyword_tokens(text)
