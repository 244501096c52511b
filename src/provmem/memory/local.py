"""In-process fact store.

Same semantics as ``RedisFactStore`` (keyword-union text search, the
same result ordering, all-or-nothing batches) without a server.  Batches
are computed on the side and swapped in only once every change has
validated.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from collections.abc import Mapping

from provmem.errors import FactNotFoundError
from provmem.memory.base import apply_changes
from provmem.memory.base import FactChanges
from provmem.memory.base import index_keywords
from provmem.memory.base import rank_for_search
from provmem.memory.base import rank_text_hits
from provmem.memory.base import used_changes
from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.text import keyword_tokens


class InMemoryFactStore:
    """``FactStore`` implementation backed by a dict."""

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._facts: dict[str, Fact] = {}

    # -- write --

    async def create_fact(self, fact: Fact) -> str:
        if fact.id in self._facts:
            msg = f"Fact id already exists: {fact.id}"
            raise ValueError(msg)
        self._facts[fact.id] = fact
        return fact.id

    async def update_fact(self, fact_id: str, changes: FactChanges) -> Fact | None:
        current = self._facts.get(fact_id)
        if current is None:
            return None
        updated = apply_changes(current, changes, self._clock())
        self._facts[fact_id] = updated
        return updated

    async def update_facts(self, changes: Mapping[str, FactChanges]) -> int:
        now = self._clock()
        staged: dict[str, Fact] = {}
        for fact_id, fact_changes in changes.items():
            current = self._facts.get(fact_id)
            if current is None:
                raise FactNotFoundError(fact_id)
            staged[fact_id] = apply_changes(current, fact_changes, now)
        self._facts.update(staged)
        return len(staged)

    async def mark_used(self, fact_id: str) -> Fact | None:
        current = self._facts.get(fact_id)
        if current is None:
            return None
        return await self.update_fact(fact_id, used_changes(current, self._clock()))

    async def delete_fact(self, fact_id: str) -> bool:
        return self._facts.pop(fact_id, None) is not None

    # -- read --

    async def get_fact(self, fact_id: str) -> Fact | None:
        return self._facts.get(fact_id)

    async def search_by_text(self, text: str, limit: int = 10) -> list[Fact]:
        words = keyword_tokens(text)
        if not words:
            return []
        hits = [f for f in self._facts.values() if words & index_keywords(f)]
        return rank_text_hits(hits, words, limit)

    async def search_by_category(
        self, category: FactCategory | str, limit: int = 20
    ) -> list[Fact]:
        wanted = FactCategory(category)
        hits = [f for f in self._facts.values() if f.category == wanted]
        return rank_for_search(hits, limit)

    async def facts_for_entity(self, entity_id: str, limit: int = 20) -> list[Fact]:
        hits = [f for f in self._facts.values() if entity_id in f.links]
        return rank_for_search(hits, limit)

    async def all_facts(self, limit: int | None = None) -> list[Fact]:
        ordered = sorted(
            self._facts.values(),
            key=lambda f: f.lifecycle.created_at,
            reverse=True,
        )
        return ordered if limit is None else ordered[: max(limit, 0)]

    async def all_embeddings(self) -> list[tuple[str, list[float]]]:
        return [(f.id, f.embedding) for f in self._facts.values() if f.embedding]

    async def count(self) -> int:
        return len(self._facts)

    async def clear(self) -> None:
        self._facts.clear()

    async def close(self) -> None:
        return None
