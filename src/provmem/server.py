"""provmem — FastMCP v2 server exposing provenance-aware memory tools.

Tools delegate to the engines over one ``FactStore`` (Redis-backed, or
in-memory when no URL is given).  Call ``configure()`` before using the
server.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable
from time import perf_counter

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger
from provmem.config import AuditConfig
from provmem.config import ConfidenceConfig
from provmem.config import CorroborationConfig
from provmem.config import DecayConfig
from provmem.config import EmbeddingConfig
from provmem.config import RecallConfig
from provmem.config import StoreConfig
from provmem.engine import build_embedder
from provmem.engine import ConfidenceModel
from provmem.engine import CorroborationEngine
from provmem.engine import DecayEngine
from provmem.engine import RecallEngine
from provmem.engine import ReflectionEngine
from provmem.engine import SimilarityProvider
from provmem.errors import EmbeddingError
from provmem.memory import create_fact
from provmem.memory import FactStore
from provmem.memory import InMemoryFactStore
from provmem.memory import RedisFactStore
from provmem.models import ContradictionScanResult
from provmem.models import RecallMeta
from provmem.models import RecallQuery
from provmem.models import RecallResponse
from provmem.models import RecallResult
from provmem.models import ReflectionReport
from provmem.models import RememberInput
from provmem.models import RememberResult
from provmem.models import SweepResult
from provmem.models import TierResult
from provmem.models import UsageResult
from provmem.models import VerificationResult
from provmem.observability import track_latency

logger = logging.getLogger(__name__)

mcp = FastMCP("provmem")

# ---------------------------------------------------------------------------
# Engine instances (set via configure())
# ---------------------------------------------------------------------------

_store: RedisFactStore | InMemoryFactStore | None = None
_audit_logger: AuditLogger | None = None
_embedder: SimilarityProvider | None = None
_confidence: ConfidenceModel | None = None
_decay_config: DecayConfig | None = None
_decay: DecayEngine | None = None
_corroboration: CorroborationEngine | None = None
_recall: RecallEngine | None = None
_reflection: ReflectionEngine | None = None
_lock: asyncio.Lock | None = None
_clock: Callable[[], float] = time.time


async def configure(
    redis_url: str | None = None,
    *,
    store_config: StoreConfig | None = None,
    confidence_config: ConfidenceConfig | None = None,
    decay_config: DecayConfig | None = None,
    corroboration_config: CorroborationConfig | None = None,
    recall_config: RecallConfig | None = None,
    embedding_config: EmbeddingConfig | None = None,
    embedder: SimilarityProvider | None = None,
    audit_config: AuditConfig | None = None,
    clock: Callable[[], float] | None = None,
) -> None:
    """Initialize the store and engines.

    Without *redis_url* facts live in process memory only.  An explicit
    *embedder* wins over one built from *embedding_config*.

    Must be called before the MCP tools can function.
    """
    global _store, _audit_logger, _embedder, _confidence, _decay_config
    global _decay, _corroboration, _recall, _reflection, _lock, _clock
    if _store is not None:
        try:
            await _store.close()
        except RuntimeError as exc:
            # Reconfiguring from another event loop
            logger.debug("Previous store not closed cleanly: %s", exc)

    _clock = clock or time.time
    _lock = asyncio.Lock()
    _audit_logger = AuditLogger(audit_config, clock=_clock)
    _embedder = embedder or build_embedder(embedding_config or EmbeddingConfig())
    _confidence = ConfidenceModel(confidence_config)
    _decay_config = decay_config or DecayConfig()

    if redis_url is None:
        _store = InMemoryFactStore(clock=_clock)
    else:
        _store = RedisFactStore(
            Redis.from_url(redis_url), config=store_config, clock=_clock
        )

    _decay = DecayEngine(
        _store,
        config=_decay_config,
        lock=_lock,
        audit_logger=_audit_logger,
        clock=_clock,
    )
    _corroboration = CorroborationEngine(
        _store,
        config=corroboration_config,
        lock=_lock,
        audit_logger=_audit_logger,
        clock=_clock,
    )
    _recall = RecallEngine(
        _store,
        embedder=_embedder,
        config=recall_config,
        lock=_lock,
        audit_logger=_audit_logger,
    )
    _reflection = ReflectionEngine(
        _store,
        decay=_decay,
        corroboration=_corroboration,
        lock=_lock,
        audit_logger=_audit_logger,
        clock=_clock,
    )


async def shutdown() -> None:
    """Close backend clients and release server resources."""
    global _store, _audit_logger, _embedder, _confidence, _decay_config
    global _decay, _corroboration, _recall, _reflection, _lock
    if _store is not None:
        await _store.close()
        _store = None
    _audit_logger = None
    _embedder = None
    _confidence = None
    _decay_config = None
    _decay = None
    _corroboration = None
    _recall = None
    _reflection = None
    _lock = None


async def _reset_store() -> None:
    """Clear all facts — exposed for test cleanup."""
    if _store is not None:
        await _store.clear()


def _get_store() -> FactStore:
    """Return the store instance or raise."""
    if _store is None:
        raise RuntimeError("Fact store not configured. Call configure() first.")
    return _store


def _get_lock() -> asyncio.Lock:
    if _lock is None:
        raise RuntimeError("Fact store not configured. Call configure() first.")
    return _lock


def _get_engines() -> tuple[DecayEngine, CorroborationEngine, RecallEngine, ReflectionEngine]:
    if _decay is None or _corroboration is None or _recall is None or _reflection is None:
        raise RuntimeError("Engines not configured. Call configure() first.")
    return _decay, _corroboration, _recall, _reflection


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    return str(err.get("msg", "Invalid input"))


def _remember_rejected(error_code: str, message: str) -> RememberResult:
    return RememberResult(
        status="rejected",
        error_code=error_code,
        message=message,
    )


def _recall_error(
    *, query: str, limit: int, error_code: str, message: str
) -> RecallResponse:
    return RecallResponse(
        status="error",
        error_code=error_code,
        message=message,
        results=[],
        meta=RecallMeta(query=query, returned=0, limit=limit),
    )


def _recall_response(
    query: str, limit: int, results: list[RecallResult], start: float
) -> RecallResponse:
    return RecallResponse(
        results=results,
        meta=RecallMeta(
            query=query,
            returned=len(results),
            limit=limit,
            retrieval_ms=int((perf_counter() - start) * 1000),
        ),
    )


async def _embed_content(content: str) -> list[float] | None:
    """Embed new content; a failing provider stores the fact without a vector."""
    if _embedder is None:
        return None
    try:
        return await _embedder.embed(content)
    except (EmbeddingError, OSError) as exc:
        logger.warning("Storing fact without embedding: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool
async def remember(
    content: str,
    kind: str,
    category: str = "fact",
    actor: str | None = None,
    context: str | None = None,
    links: list[str] | None = None,
    tags: list[str] | None = None,
    summary: str | None = None,
    protected: bool = False,
    session_id: str | None = None,
) -> RememberResult:
    """Store an attributed fact and let it corroborate existing ones.

    Args:
        content: The fact, observation or preference as text.
        kind: How it was learned: experienced, observed, told, read or inferred.
        category: fact, preference, event, relationship, opinion,
                  procedure or observation.
        actor: Who or what supplied it.
        context: Situation in which it was learned.
        links: Entity identifiers the fact is about.
        tags: Free-form labels.
        summary: Short display form.
        protected: Exempt from decay.
        session_id: Identifier of the learning session.
    """
    with track_latency("mcp.remember"):
        store = _get_store()
        _, corroboration, _, _ = _get_engines()

        try:
            validated = RememberInput.model_validate(
                {
                    "content": content,
                    "kind": kind,
                    "category": category,
                    "actor": actor,
                    "context": context,
                    "links": links or [],
                    "tags": tags or [],
                    "summary": summary,
                    "protected": protected,
                    "session_id": session_id,
                }
            )
        except ValidationError as exc:
            return _remember_rejected("validation_error", _validation_message(exc))

        embedding = await _embed_content(validated.content)
        fact = create_fact(
            validated.content,
            validated.kind,
            validated.category,
            actor=validated.actor,
            context=validated.context,
            session_id=validated.session_id,
            links=validated.links,
            tags=validated.tags,
            summary=validated.summary,
            protected=validated.protected,
            embedding=embedding,
            now=_clock(),
            confidence_model=_confidence,
            decay_config=_decay_config,
        )
        async with _get_lock():
            await store.create_fact(fact)

        if _audit_logger is not None:
            await _audit_logger.record(
                AuditEventType.FACT_CREATED,
                fact_id=fact.id,
                kind=fact.provenance.kind.value,
                category=fact.category.value,
                trust_score=fact.trust.score,
            )

        corroborations = await corroboration.check_corroboration(fact)
        return RememberResult(
            fact_id=fact.id,
            trust_score=fact.trust.score,
            rationale=fact.trust.rationale,
            corroborations=corroborations,
        )


@mcp.tool
async def recall(
    query: str,
    context: str | None = None,
    entities: list[str] | None = None,
    categories: list[str] | None = None,
    min_trust: float = 0.3,
    min_relevance: float = 0.1,
    limit: int = 10,
    include_archived: bool = False,
) -> RecallResponse:
    """Retrieve the most trustworthy, relevant facts for a query.

    Args:
        query: Natural language query.
        context: What the agent is currently doing.
        entities: Entity identifiers whose facts should be considered.
        categories: Categories whose facts should be considered.
        min_trust: Drop facts trusted less than this.
        min_relevance: Drop decayed facts below this relevance.
        limit: Max facts returned.
        include_archived: Keep facts below min_relevance.
    """
    start = perf_counter()
    with track_latency("mcp.recall"):
        _, _, recall_engine, _ = _get_engines()
        try:
            validated = RecallQuery.model_validate(
                {
                    "text": query,
                    "context": context,
                    "entity_filter": entities or [],
                    "category_filter": categories or [],
                    "min_trust": min_trust,
                    "min_relevance": min_relevance,
                    "limit": limit,
                    "include_archived": include_archived,
                }
            )
        except ValidationError as exc:
            return _recall_error(
                query=query,
                limit=recall_engine.clamp_limit(limit),
                error_code="validation_error",
                message=_validation_message(exc),
            )

        results = await recall_engine.recall(validated)
        return _recall_response(validated.text, validated.limit, results, start)


@mcp.tool
async def quick_recall(
    query: str,
    limit: int = 5,
    context: str | None = None,
) -> RecallResponse:
    """Fast lexical-only recall.

    Args:
        query: Natural language query.
        limit: Max facts returned.
        context: What the agent is currently doing.
    """
    start = perf_counter()
    with track_latency("mcp.quick_recall"):
        _, _, recall_engine, _ = _get_engines()
        limit = recall_engine.clamp_limit(limit)
        results = await recall_engine.quick_recall(query, limit=limit, context=context)
        return _recall_response(query, limit, results, start)


@mcp.tool
async def entity_recall(entity_id: str, limit: int = 20) -> RecallResponse:
    """Everything known about one entity, ranked by trust and relevance.

    Args:
        entity_id: Entity identifier.
        limit: Max facts returned.
    """
    start = perf_counter()
    with track_latency("mcp.entity_recall"):
        _, _, recall_engine, _ = _get_engines()
        limit = recall_engine.clamp_limit(limit)
        results = await recall_engine.entity_recall(entity_id, limit=limit)
        return _recall_response(entity_id, limit, results, start)


@mcp.tool
async def mark_used(fact_id: str) -> UsageResult:
    """Record that a recalled fact was actually used; slows its decay.

    Args:
        fact_id: ID of the fact.
    """
    with track_latency("mcp.mark_used"):
        store = _get_store()
        async with _get_lock():
            fact = await store.mark_used(fact_id)
        if fact is None:
            return UsageResult(status="not_found", fact_id=fact_id)
        return UsageResult(
            fact_id=fact.id,
            use_count=fact.lifecycle.use_count,
            last_used_at=fact.lifecycle.last_used_at,
        )


@mcp.tool
async def verify_fact(fact_id: str) -> VerificationResult:
    """Look for evidence supporting one fact and raise its trust.

    Args:
        fact_id: ID of the fact to verify.
    """
    with track_latency("mcp.verify_fact"):
        _, corroboration, _, _ = _get_engines()
        return await corroboration.verify(fact_id)


@mcp.tool
async def find_contradictions(limit: int = 50) -> ContradictionScanResult:
    """Flag pairs of related facts that make opposing claims.

    Args:
        limit: Max pairs returned.
    """
    with track_latency("mcp.find_contradictions"):
        _, corroboration, _, _ = _get_engines()
        pairs = await corroboration.find_contradictions(limit=limit)
        return ContradictionScanResult(contradictions=pairs)


@mcp.tool
async def sweep_decay() -> SweepResult:
    """Recompute relevance for every unprotected fact."""
    with track_latency("mcp.sweep_decay"):
        decay, _, _, _ = _get_engines()
        return await decay.sweep()


@mcp.tool
async def decay_tier(fact_id: str) -> TierResult:
    """Classify one fact as hot, warm or cold.

    Args:
        fact_id: ID of the fact.
    """
    with track_latency("mcp.decay_tier"):
        store = _get_store()
        decay, _, _, _ = _get_engines()
        fact = await store.get_fact(fact_id)
        if fact is None:
            return TierResult(status="not_found", fact_id=fact_id)
        return TierResult(
            fact_id=fact.id,
            tier=decay.tier(fact),
            relevance=decay.relevance(fact),
        )


@mcp.tool
async def reflect() -> ReflectionReport:
    """Run one maintenance cycle and report memory health."""
    with track_latency("mcp.reflect"):
        _, _, _, reflection = _get_engines()
        return await reflection.reflect()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the server over stdio, configured from the environment."""
    load_dotenv()
    logging.basicConfig(level=os.getenv("PROVMEM_LOG_LEVEL", "INFO"))
    embedding_config = EmbeddingConfig(
        provider=os.getenv("PROVMEM_EMBEDDING_PROVIDER", "none"),
        model=os.getenv("PROVMEM_EMBEDDING_MODEL", EmbeddingConfig.model),
        api_key=os.getenv("PROVMEM_EMBEDDING_API_KEY"),
        base_url=os.getenv("PROVMEM_EMBEDDING_BASE_URL", EmbeddingConfig.base_url),
    )
    audit_config = AuditConfig(
        file_path=os.getenv("PROVMEM_AUDIT_FILE", AuditConfig.file_path),
    )
    asyncio.run(
        configure(
            os.getenv("PROVMEM_REDIS_URL"),
            embedding_config=embedding_config,
            audit_config=audit_config,
        )
    )
    mcp.run()
