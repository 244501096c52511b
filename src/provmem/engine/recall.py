"""Recall engine — trust- and relevance-weighted retrieval.

Recall is not just "find similar text": it finds the most trustworthy
and relevant facts for the current context.

Pipeline:

1. Gather candidates from up to four channels (lexical, entity,
   category, semantic) into per-fact channel scores.
2. Fuse the channel scores into one ``match_score``.
3. ``final_score = match_score * trust * relevance * context_boost``.
4. Drop low-trust, archived (unless asked) and noise-level results.
5. Sort by final score, then trust, then recency; truncate.

Recall never writes to the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger
from provmem.config import RecallConfig
from provmem.engine.embeddings import SimilarityProvider
from provmem.errors import EmbeddingError
from provmem.memory.base import FactStore
from provmem.models.facts import Fact
from provmem.models.schemas import ChannelScores
from provmem.models.schemas import RecallQuery
from provmem.models.schemas import RecallResult
from provmem.observability import track_latency
from provmem.text import cosine_similarity
from provmem.text import lexical_match_score

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    fact: Fact
    lexical: float = 0.0
    semantic: float = 0.0
    entity: float = 0.0
    sources: set[str] = field(default_factory=set)


def _sort_key(result: RecallResult) -> tuple[float, float, float]:
    return (
        result.final_score,
        result.fact.trust.score,
        result.fact.lifecycle.created_at,
    )


def rank(results: Iterable[RecallResult], limit: int) -> list[RecallResult]:
    """Sort by final score, trust, then most recent first; keep *limit*."""
    return sorted(results, key=_sort_key, reverse=True)[:limit]


class RecallEngine:
    """Multi-channel recall over a ``FactStore``."""

    def __init__(
        self,
        store: FactStore,
        *,
        embedder: SimilarityProvider | None = None,
        config: RecallConfig | None = None,
        lock: asyncio.Lock | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or RecallConfig()
        self._lock = lock or asyncio.Lock()
        self._audit = audit_logger

    @property
    def semantic_enabled(self) -> bool:
        return self._embedder is not None

    def clamp_limit(self, limit: int) -> int:
        return self._config.clamp_limit(limit)

    # ------------------------------------------------------------------
    # Full recall
    # ------------------------------------------------------------------

    async def recall(self, query: RecallQuery) -> list[RecallResult]:
        """Run the full multi-channel pipeline for *query*."""
        if not query.text.strip():
            return []

        with track_latency("recall.recall"):
            # Network-bound; must not run while holding the store lock
            query_embedding = await self._embed_query(query.text)

            async with self._lock:
                candidates = await self._gather(query, query_embedding)

            results = [
                result
                for candidate in candidates.values()
                if (result := self._score(candidate, query)) is not None
            ]
            ranked = rank(results, query.limit)

        logger.debug(
            "Recall query=%r candidates=%d returned=%d semantic=%s",
            query.text,
            len(candidates),
            len(ranked),
            query_embedding is not None,
        )
        await self._audit_recall(query.text, ranked)
        return ranked

    async def _embed_query(self, text: str) -> list[float] | None:
        if self._embedder is None:
            return None
        try:
            return await asyncio.wait_for(
                self._embedder.embed(text),
                timeout=self._config.embedding_timeout_seconds,
            )
        except (EmbeddingError, TimeoutError, OSError) as exc:
            logger.warning("Embedding unavailable, recall degrades to lexical: %s", exc)
            return None

    async def _gather(
        self, query: RecallQuery, query_embedding: list[float] | None
    ) -> dict[str, _Candidate]:
        cfg = self._config
        limit = query.limit
        candidates: dict[str, _Candidate] = {}

        def add(fact: Fact, source: str) -> _Candidate:
            candidate = candidates.get(fact.id)
            if candidate is None:
                candidate = candidates[fact.id] = _Candidate(fact=fact)
            candidate.sources.add(source)
            return candidate

        for fact in await self._store.search_by_text(query.text, limit * 3):
            add(fact, "lexical").lexical = lexical_match_score(
                query.text,
                fact.content,
                fact.summary,
                min_term_length=cfg.lexical_term_length,
            )

        for entity_id in query.entity_filter:
            for fact in await self._store.facts_for_entity(entity_id, limit * 2):
                add(fact, "entity").entity = 1.0

        for category in query.category_filter:
            for fact in await self._store.search_by_category(category, limit * 2):
                add(fact, "category")

        if query_embedding is not None:
            for fact_id, embedding in await self._store.all_embeddings():
                similarity = cosine_similarity(query_embedding, embedding)
                if similarity <= cfg.semantic_threshold:
                    continue
                candidate = candidates.get(fact_id)
                if candidate is None:
                    fact = await self._store.get_fact(fact_id)
                    if fact is None:
                        continue
                    candidate = add(fact, "semantic")
                candidate.semantic = similarity

        return candidates

    def _score(self, candidate: _Candidate, query: RecallQuery) -> RecallResult | None:
        """Fuse, weight and filter one candidate; ``None`` means dropped."""
        cfg = self._config
        fact = candidate.fact
        if fact.trust.score < query.min_trust:
            return None
        if fact.relevance < query.min_relevance and not query.include_archived:
            return None

        match_score = self.match_score(candidate.lexical, candidate.semantic, candidate.entity)
        final_score = (
            match_score
            * fact.trust.score
            * fact.relevance
            * self.context_boost(query.context, fact)
        )
        if final_score < cfg.noise_floor:
            return None
        return RecallResult(
            fact=fact,
            match_score=match_score,
            final_score=final_score,
            scores=ChannelScores(
                lexical=candidate.lexical,
                semantic=candidate.semantic,
                entity=candidate.entity,
            ),
        )

    def match_score(self, lexical: float, semantic: float, entity: float) -> float:
        """Weighted fusion; semantic takes the largest share when present."""
        cfg = self._config
        if semantic > 0:
            return (
                semantic * cfg.semantic_weight
                + lexical * cfg.lexical_weight_with_semantic
                + entity * cfg.entity_weight_with_semantic
            )
        return lexical * cfg.lexical_weight + entity * cfg.entity_weight

    def context_boost(self, context: str | None, fact: Fact) -> float:
        """Up to ``1 + context_boost`` for facts learned in a similar context."""
        fact_context = (fact.provenance.context or "").lower()
        if not context or not fact_context:
            return 1.0
        terms = [
            t
            for t in context.lower().split()
            if len(t) > self._config.context_token_length
        ]
        if not terms:
            return 1.0
        overlap = sum(1 for t in terms if t in fact_context)
        return 1.0 + (overlap / len(terms)) * self._config.context_boost

    # ------------------------------------------------------------------
    # Fast paths
    # ------------------------------------------------------------------

    async def quick_recall(
        self, text: str, *, limit: int = 5, context: str | None = None
    ) -> list[RecallResult]:
        """Lexical-only recall with the default filters."""
        if not text.strip():
            return []
        limit = self.clamp_limit(limit)
        query = RecallQuery(
            text=text,
            context=context,
            min_trust=self._config.default_min_trust,
            min_relevance=self._config.default_min_relevance,
            limit=limit,
        )
        with track_latency("recall.quick_recall"):
            async with self._lock:
                facts = await self._store.search_by_text(text, query.limit * 3)

            results = []
            for fact in facts:
                candidate = _Candidate(
                    fact=fact,
                    lexical=lexical_match_score(
                        text,
                        fact.content,
                        fact.summary,
                        min_term_length=self._config.lexical_term_length,
                    ),
                )
                result = self._score(candidate, query)
                if result is not None:
                    results.append(result)
            return rank(results, query.limit)

    async def entity_recall(self, entity_id: str, *, limit: int = 20) -> list[RecallResult]:
        """Everything linked to *entity_id*, ranked by trust times relevance."""
        limit = self.clamp_limit(limit)
        with track_latency("recall.entity_recall"):
            async with self._lock:
                facts = await self._store.facts_for_entity(entity_id, limit)
            results = [
                RecallResult(
                    fact=fact,
                    match_score=1.0,
                    final_score=fact.trust.score * fact.relevance,
                    scores=ChannelScores(entity=1.0),
                )
                for fact in facts
            ]
            return rank(results, limit)

    async def _audit_recall(self, text: str, results: list[RecallResult]) -> None:
        if self._audit is None:
            return
        await self._audit.record(
            AuditEventType.RECALL,
            query=text,
            returned=len(results),
            fact_ids=[r.fact.id for r in results],
        )
