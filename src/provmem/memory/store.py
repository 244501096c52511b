"""Redis-backed persistent fact store.

Facts are stored as JSON strings keyed by ``provmem:fact:{id}``.
A sorted set ``provmem:created`` tracks creation order (score = created_at).
Sets ``provmem:keyword:{word}``, ``provmem:entity:{id}`` and
``provmem:category:{name}`` back the search primitives, and
``provmem:embedded`` lists facts carrying an embedding.

There is no TTL: facts live until ``delete_fact`` removes them.  Every
multi-key write is a single ``MULTI/EXEC`` pipeline, so a failed batch
leaves no partial state behind.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping

from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from provmem.config import StoreConfig
from provmem.errors import FactNotFoundError
from provmem.errors import StoreTransactionError
from provmem.memory.base import apply_changes
from provmem.memory.base import FactChanges
from provmem.memory.base import index_keywords
from provmem.memory.base import rank_for_search
from provmem.memory.base import rank_text_hits
from provmem.memory.base import used_changes
from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.text import keyword_tokens

logger = logging.getLogger(__name__)

_CLEAR_BATCH_SIZE = 100


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class RedisFactStore:
    """``FactStore`` implementation on top of ``redis.asyncio``."""

    def __init__(
        self,
        redis: Redis,
        *,
        config: StoreConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._redis = redis
        self._config = config or StoreConfig()
        self._clock = clock or time.time
        prefix = self._config.key_prefix
        self._prefix = prefix
        self._fact_key = f"{prefix}:fact"
        self._created_key = f"{prefix}:created"
        self._keyword_key = f"{prefix}:keyword"
        self._entity_key = f"{prefix}:entity"
        self._category_key = f"{prefix}:category"
        self._embedded_key = f"{prefix}:embedded"

    # -- write --

    async def create_fact(self, fact: Fact) -> str:
        """Store a new fact and index it.  Ids are never reused."""
        key = f"{self._fact_key}:{fact.id}"
        if await self._redis.exists(key):
            msg = f"Fact id already exists: {fact.id}"
            raise ValueError(msg)

        pipe = self._redis.pipeline(transaction=True)
        pipe.set(key, fact.model_dump_json())
        pipe.zadd(self._created_key, {fact.id: fact.lifecycle.created_at})
        pipe.sadd(f"{self._category_key}:{fact.category.value}", fact.id)
        for entity_id in fact.links:
            pipe.sadd(f"{self._entity_key}:{entity_id}", fact.id)
        for word in index_keywords(fact):
            pipe.sadd(f"{self._keyword_key}:{word}", fact.id)
        if fact.embedding:
            pipe.sadd(self._embedded_key, fact.id)
        await self._execute(pipe, "create_fact")
        return fact.id

    async def update_fact(self, fact_id: str, changes: FactChanges) -> Fact | None:
        current = await self.get_fact(fact_id)
        if current is None:
            return None
        updated = apply_changes(current, changes, self._clock())
        pipe = self._redis.pipeline(transaction=True)
        self._queue_replace(pipe, current, updated)
        await self._execute(pipe, "update_fact")
        return updated

    async def update_facts(self, changes: Mapping[str, FactChanges]) -> int:
        """Apply all *changes* in one transaction.

        Every change is validated before anything is written; an unknown id
        raises ``FactNotFoundError`` and a Redis failure raises
        ``StoreTransactionError``.  Either way nothing is persisted.
        """
        if not changes:
            return 0
        ids = list(changes)
        currents = await self._get_many(ids)
        now = self._clock()

        pipe = self._redis.pipeline(transaction=True)
        for fact_id, current in zip(ids, currents):
            if current is None:
                raise FactNotFoundError(fact_id)
            updated = apply_changes(current, changes[fact_id], now)
            self._queue_replace(pipe, current, updated)
        await self._execute(pipe, "update_facts")
        return len(ids)

    async def mark_used(self, fact_id: str) -> Fact | None:
        current = await self.get_fact(fact_id)
        if current is None:
            return None
        return await self.update_fact(fact_id, used_changes(current, self._clock()))

    async def delete_fact(self, fact_id: str) -> bool:
        """Hard-delete a fact and remove it from every index."""
        fact = await self.get_fact(fact_id)
        if fact is None:
            return False

        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(f"{self._fact_key}:{fact_id}")
        pipe.zrem(self._created_key, fact_id)
        pipe.srem(f"{self._category_key}:{fact.category.value}", fact_id)
        pipe.srem(self._embedded_key, fact_id)
        for entity_id in fact.links:
            pipe.srem(f"{self._entity_key}:{entity_id}", fact_id)
        for word in index_keywords(fact):
            pipe.srem(f"{self._keyword_key}:{word}", fact_id)
        await self._execute(pipe, "delete_fact")
        return True

    # -- read --

    async def get_fact(self, fact_id: str) -> Fact | None:
        """Retrieve a fact by id, or ``None`` if missing."""
        data = await self._redis.get(f"{self._fact_key}:{fact_id}")
        if data is None:
            return None
        return Fact.model_validate_json(data)

    async def search_by_text(self, text: str, limit: int = 10) -> list[Fact]:
        """Union of keyword matches, best keyword overlap first."""
        words = keyword_tokens(text)
        if not words:
            return []
        keys = [f"{self._keyword_key}:{w}" for w in words]
        ids = await self._redis.sunion(*keys)
        return rank_text_hits(await self._load(ids), words, limit)

    async def search_by_category(
        self, category: FactCategory | str, limit: int = 20
    ) -> list[Fact]:
        name = FactCategory(category).value
        ids = await self._redis.smembers(f"{self._category_key}:{name}")
        return rank_for_search(await self._load(ids), limit)

    async def facts_for_entity(self, entity_id: str, limit: int = 20) -> list[Fact]:
        ids = await self._redis.smembers(f"{self._entity_key}:{entity_id}")
        return rank_for_search(await self._load(ids), limit)

    async def all_facts(self, limit: int | None = None) -> list[Fact]:
        """Return facts newest first."""
        if limit is not None and limit < 1:
            return []
        stop = -1 if limit is None else limit - 1
        ids = await self._redis.zrevrange(self._created_key, 0, stop)
        return await self._load(ids)

    async def all_embeddings(self) -> list[tuple[str, list[float]]]:
        ids = await self._redis.smembers(self._embedded_key)
        return [
            (fact.id, fact.embedding)
            for fact in await self._load(ids)
            if fact.embedding
        ]

    async def count(self) -> int:
        return await self._redis.zcard(self._created_key)

    async def clear(self) -> None:
        """Remove all facts and indexes.

        Deletes in batches to avoid loading all keys into memory at once.
        """
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            batch.append(key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)

    async def close(self) -> None:
        await self._redis.aclose()

    # -- internal --

    async def _get_many(self, ids: list[str]) -> list[Fact | None]:
        if not ids:
            return []
        pipe = self._redis.pipeline()
        for fid in ids:
            pipe.get(f"{self._fact_key}:{fid}")
        raw_results = await pipe.execute()
        return [
            Fact.model_validate_json(raw) if raw is not None else None
            for raw in raw_results
        ]

    async def _load(self, raw_ids: Iterable[bytes | str]) -> list[Fact]:
        """Batch-fetch facts, skipping ids whose document is gone."""
        ids = [_decode(raw_id) for raw_id in raw_ids]
        return [fact for fact in await self._get_many(ids) if fact is not None]

    def _queue_replace(self, pipe, current: Fact, updated: Fact) -> None:
        pipe.set(f"{self._fact_key}:{updated.id}", updated.model_dump_json())

        old_words = index_keywords(current)
        new_words = index_keywords(updated)
        for word in old_words - new_words:
            pipe.srem(f"{self._keyword_key}:{word}", updated.id)
        for word in new_words - old_words:
            pipe.sadd(f"{self._keyword_key}:{word}", updated.id)

        for entity_id in current.links - updated.links:
            pipe.srem(f"{self._entity_key}:{entity_id}", updated.id)
        for entity_id in updated.links - current.links:
            pipe.sadd(f"{self._entity_key}:{entity_id}", updated.id)

        if updated.embedding and not current.embedding:
            pipe.sadd(self._embedded_key, updated.id)
        elif current.embedding and not updated.embedding:
            pipe.srem(self._embedded_key, updated.id)

    async def _execute(self, pipe, operation: str) -> None:
        try:
            await pipe.execute()
        except RedisError as exc:
            logger.exception("Redis transaction failed during %s", operation)
            raise StoreTransactionError(f"{operation} rolled back: {exc}") from exc
