"""Corroboration & contradiction detector.

Confidence is not static.  When an independent source agrees with an
existing fact, that fact's trust rises; when two related facts make
opposing claims, both are flagged.  ``conflict_count`` is informational:
it is never folded back into ``trust.score``.

Every operation gathers its candidates and writes its trust changes
under the shared operation lock, in one atomic ``update_facts`` batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from collections.abc import Sequence

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger
from provmem.config import CorroborationConfig
from provmem.memory.base import FactStore
from provmem.models.facts import Fact
from provmem.models.facts import Trust
from provmem.models.schemas import ContradictionResult
from provmem.models.schemas import CorroborationResult
from provmem.models.schemas import FactSnapshot
from provmem.models.schemas import VerificationResult
from provmem.engine.rules import check_independence
from provmem.engine.rules import Conflict
from provmem.engine.rules import Dependent
from provmem.engine.rules import detect_contradiction
from provmem.observability import track_latency
from provmem.text import jaccard
from provmem.text import significant_tokens

logger = logging.getLogger(__name__)


def _snapshot(fact: Fact) -> FactSnapshot:
    return FactSnapshot(id=fact.id, summary=fact.display_text, score=fact.trust.score)


class CorroborationEngine:
    """Raise, verify and flag trust across related facts."""

    def __init__(
        self,
        store: FactStore,
        *,
        config: CorroborationConfig | None = None,
        lock: asyncio.Lock | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._config = config or CorroborationConfig()
        self._lock = lock or asyncio.Lock()
        self._audit = audit_logger
        self._clock = clock or time.time

    # ---- Corroboration ----

    async def check_corroboration(self, new_fact: Fact) -> list[CorroborationResult]:
        """Boost existing facts that an independent *new_fact* agrees with.

        Dependent sources (same kind, actor and context) never corroborate,
        whatever the content overlap.
        """
        cfg = self._config
        results: list[CorroborationResult] = []
        with track_latency("corroboration.check"):
            async with self._lock:
                now = self._clock()
                changes: dict[str, dict[str, Trust]] = {}
                for existing in await self._find_related(new_fact):
                    if existing.id == new_fact.id:
                        continue
                    if isinstance(check_independence(new_fact, existing), Dependent):
                        continue
                    similarity = self._similarity(new_fact, existing)
                    if similarity <= cfg.corroboration_threshold:
                        continue

                    boost = self._boost(similarity, new_fact, existing)
                    old_score = existing.trust.score
                    new_score = round(min(1.0, old_score + boost), 2)
                    kind = new_fact.provenance.kind.value
                    changes[existing.id] = {
                        "trust": existing.trust.model_copy(
                            update={
                                "score": new_score,
                                "support_count": existing.trust.support_count + 1,
                                "last_confirmed": now,
                                "rationale": [
                                    *existing.trust.rationale,
                                    f"+{boost:.0%} corroborated by {kind} source "
                                    f"({similarity:.0%} similar)",
                                ],
                            }
                        )
                    }
                    results.append(
                        CorroborationResult(
                            fact_id=existing.id,
                            old_score=old_score,
                            new_score=new_score,
                            reason=(
                                f"Corroborated by new {kind} fact "
                                f"(similarity: {similarity:.0%})"
                            ),
                        )
                    )

                if changes:
                    await self._store.update_facts(changes)

        if results:
            logger.info(
                "Fact %s corroborated %d existing fact(s)", new_fact.id, len(results)
            )
            await self._audit_trust_changes(results, source_id=new_fact.id)
        return results

    def _boost(self, similarity: float, new_fact: Fact, existing: Fact) -> float:
        """Similarity-scaled boost, weighted by source strength.

        Diminishing returns: each prior corroboration shrinks the next one.
        """
        cfg = self._config
        weight = cfg.source_weight_for(new_fact.provenance.kind.value)
        return (
            similarity
            * cfg.boost_scale
            * weight
            / (1 + existing.trust.support_count * cfg.diminishing_factor)
        )

    # ---- Contradiction ----

    async def find_contradictions(
        self,
        *,
        corpus: Sequence[Fact] | None = None,
        limit: int = 50,
    ) -> list[ContradictionResult]:
        """Scan pairs of facts for opposing claims.

        Compares every pair of *corpus* (default: the most recent
        ``contradiction_scan_size`` stored facts) and stops at exactly
        *limit* pairs.  Both sides of each pair get ``conflict_count``
        incremented and a rationale entry naming the other fact.
        """
        cfg = self._config
        results: list[ContradictionResult] = []
        if limit < 1:
            return results

        with track_latency("corroboration.find_contradictions"):
            async with self._lock:
                facts = (
                    list(corpus)
                    if corpus is not None
                    else await self._store.all_facts(cfg.contradiction_scan_size)
                )
                flags: dict[str, list[str]] = {}
                for i, a in enumerate(facts):
                    if len(results) >= limit:
                        break
                    for b in facts[i + 1 :]:
                        verdict = detect_contradiction(
                            a,
                            b,
                            negation_pairs=cfg.negation_pairs,
                            similarity_floor=cfg.contradiction_similarity_floor,
                            token_length=cfg.similarity_token_length,
                        )
                        if not isinstance(verdict, Conflict):
                            continue
                        results.append(
                            ContradictionResult(
                                fact_a=_snapshot(a),
                                fact_b=_snapshot(b),
                                similarity=verdict.similarity,
                                reason=verdict.reason,
                            )
                        )
                        flags.setdefault(a.id, []).append(
                            f"Potential contradiction with fact {b.id}"
                        )
                        flags.setdefault(b.id, []).append(
                            f"Potential contradiction with fact {a.id}"
                        )
                        if len(results) >= limit:
                            break

                if flags:
                    await self._flag_conflicts(flags)

        for result in results:
            logger.info(
                "Contradiction between %s and %s: %s",
                result.fact_a.id,
                result.fact_b.id,
                result.reason,
            )
            if self._audit is not None:
                await self._audit.record(
                    AuditEventType.CONTRADICTION_FLAGGED,
                    fact_a=result.fact_a.id,
                    fact_b=result.fact_b.id,
                    similarity=result.similarity,
                    reason=result.reason,
                )
        return results

    async def _flag_conflicts(self, flags: dict[str, list[str]]) -> None:
        """Apply accumulated conflict flags against the stored trust."""
        changes: dict[str, dict[str, Trust]] = {}
        for fact_id, lines in flags.items():
            current = await self._store.get_fact(fact_id)
            if current is None:
                logger.warning("Skipping conflict flag for unknown fact %s", fact_id)
                continue
            changes[fact_id] = {
                "trust": current.trust.model_copy(
                    update={
                        "conflict_count": current.trust.conflict_count + len(lines),
                        "rationale": [*current.trust.rationale, *lines],
                    }
                )
            }
        if changes:
            await self._store.update_facts(changes)

    # ---- Verification ----

    async def verify(self, fact_id: str) -> VerificationResult:
        """Search for evidence supporting one fact and raise its score.

        Looser than corroboration: any related fact above
        ``verify_threshold`` counts, independent or not.
        """
        cfg = self._config
        with track_latency("corroboration.verify"):
            async with self._lock:
                fact = await self._store.get_fact(fact_id)
                if fact is None:
                    return VerificationResult(
                        status="not_found",
                        fact_id=fact_id,
                        verified=False,
                        evidence=["Fact not found"],
                        new_score=0.0,
                    )

                evidence: list[str] = []
                for related in await self._find_related(fact):
                    if related.id == fact.id:
                        continue
                    similarity = self._similarity(fact, related)
                    if similarity <= cfg.verify_threshold:
                        continue
                    via = (
                        f" (via {related.provenance.actor})"
                        if related.provenance.actor
                        else ""
                    )
                    evidence.append(
                        f"Supported by {related.provenance.kind.value} fact{via}"
                        f" ({similarity:.0%} similar)"
                    )

                supporting = len(evidence)
                old_score = fact.trust.score
                new_score = old_score
                if supporting:
                    new_score = round(min(1.0, old_score + supporting * cfg.verify_step), 2)
                    trust = fact.trust.model_copy(
                        update={
                            "score": new_score,
                            "support_count": fact.trust.support_count + supporting,
                            "last_confirmed": self._clock(),
                            "rationale": [
                                *fact.trust.rationale,
                                f"verified by {supporting} supporting fact(s)",
                            ],
                        }
                    )
                    await self._store.update_facts({fact.id: {"trust": trust}})

        if supporting:
            await self._audit_trust_changes(
                [
                    CorroborationResult(
                        fact_id=fact.id,
                        old_score=old_score,
                        new_score=new_score,
                        reason=f"Verified by {supporting} supporting fact(s)",
                    )
                ],
                source_id=None,
            )
        return VerificationResult(
            fact_id=fact.id,
            verified=supporting > 0,
            evidence=evidence or ["No corroborating evidence found"],
            new_score=new_score,
        )

    # ---- Internal ----

    async def _find_related(self, fact: Fact) -> list[Fact]:
        """Facts sharing an entity link or a significant word, deduplicated."""
        cfg = self._config
        seen: dict[str, Fact] = {}
        for entity_id in sorted(fact.links):
            for candidate in await self._store.facts_for_entity(
                entity_id, cfg.entity_candidate_limit
            ):
                seen.setdefault(candidate.id, candidate)

        keywords = significant_tokens(
            fact.content, min_length=cfg.significant_token_length
        )
        if keywords:
            for candidate in await self._store.search_by_text(
                " ".join(keywords), cfg.text_candidate_limit
            ):
                seen.setdefault(candidate.id, candidate)
        return list(seen.values())

    def _similarity(self, a: Fact, b: Fact) -> float:
        return jaccard(
            a.content, b.content, min_length=self._config.similarity_token_length
        )

    async def _audit_trust_changes(
        self, results: list[CorroborationResult], *, source_id: str | None
    ) -> None:
        if self._audit is None:
            return
        for result in results:
            await self._audit.record(
                AuditEventType.TRUST_CHANGE,
                fact_id=result.fact_id,
                old_score=result.old_score,
                new_score=result.new_score,
                source_id=source_id,
                reason=result.reason,
            )
