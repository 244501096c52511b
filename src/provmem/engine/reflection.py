"""Reflection cycle — periodic memory maintenance and health report.

One cycle applies decay, flags contradictions, looks for near-duplicate
facts and weak attribution, then scores overall memory health on a
0-100 scale.  Nothing is deleted: the report only lists issues and
suggestions for the caller to act on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from collections.abc import Sequence

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger
from provmem.engine.corroboration import CorroborationEngine
from provmem.engine.decay import DecayEngine
from provmem.memory.base import FactStore
from provmem.models.facts import Fact
from provmem.models.facts import ProvenanceKind
from provmem.models.schemas import ReflectionReport
from provmem.models.schemas import SweepResult
from provmem.observability import track_latency
from provmem.text import jaccard_sets
from provmem.text import word_tokens

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 0.7
SCAN_SIZE = 200
LOW_TRUST_AVERAGE = 0.4

_ACTOR_EXPECTED = frozenset({ProvenanceKind.told, ProvenanceKind.read})


def count_duplicates(facts: Sequence[Fact], threshold: float = DUPLICATE_THRESHOLD) -> int:
    """Number of fact pairs whose word sets overlap beyond *threshold*."""
    token_sets = [set(word_tokens(f.content)) for f in facts]
    pairs = 0
    for i, tokens_a in enumerate(token_sets):
        for tokens_b in token_sets[i + 1 :]:
            if jaccard_sets(tokens_a, tokens_b) > threshold:
                pairs += 1
    return pairs


def count_weak_attribution(facts: Sequence[Fact]) -> int:
    """Attribution gaps: a told/read fact without an actor, any fact without context.

    A single fact can contribute two gaps.
    """
    gaps = 0
    for fact in facts:
        provenance = fact.provenance
        if provenance.kind in _ACTOR_EXPECTED and not provenance.actor:
            gaps += 1
        if not provenance.context:
            gaps += 1
    return gaps


class ReflectionEngine:
    """Runs reflection cycles over a store."""

    def __init__(
        self,
        store: FactStore,
        *,
        decay: DecayEngine,
        corroboration: CorroborationEngine,
        lock: asyncio.Lock | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._decay = decay
        self._corroboration = corroboration
        self._lock = lock or asyncio.Lock()
        self._audit = audit_logger
        self._clock = clock or time.time

    async def reflect(self) -> ReflectionReport:
        with track_latency("reflection.reflect"):
            # Sweep and scan take the operation lock themselves
            sweep = await self._decay.sweep()
            contradictions = await self._corroboration.find_contradictions()

            async with self._lock:
                facts = await self._store.all_facts(SCAN_SIZE)

            report = self._build_report(facts, sweep, len(contradictions))

        logger.info(
            "Reflection health=%d duplicates=%d contradictions=%d weak=%d",
            report.health_score,
            report.duplicates_found,
            report.contradictions_found,
            report.weakly_attributed,
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.REFLECTION_RUN,
                health_score=report.health_score,
                duplicates_found=report.duplicates_found,
                contradictions_found=report.contradictions_found,
                weakly_attributed=report.weakly_attributed,
            )
        return report

    def _build_report(
        self, facts: Sequence[Fact], sweep: SweepResult, contradictions_found: int
    ) -> ReflectionReport:
        issues: list[str] = []
        suggestions: list[str] = []
        health = 100

        if sweep.archived_count:
            suggestions.append(
                f"{sweep.archived_count} fact(s) fell below 5% relevance. "
                "Consider reviewing or protecting important ones."
            )

        duplicates = count_duplicates(facts)
        if duplicates:
            issues.append(f"Found {duplicates} potential duplicate fact pair(s).")
            health -= duplicates * 2

        if contradictions_found:
            issues.append(f"Flagged {contradictions_found} potential contradiction(s).")
            suggestions.append("Verify contradicting facts and correct the wrong one.")

        weak = count_weak_attribution(facts)
        if weak:
            issues.append(f"{weak} attribution gap(s): missing actor or context.")
            suggestions.append("Consider enriching attribution on important facts.")
            health -= weak

        average_trust = 0.0
        average_relevance = 0.0
        if facts:
            average_trust = round(sum(f.trust.score for f in facts) / len(facts), 2)
            average_relevance = round(sum(f.relevance for f in facts) / len(facts), 2)
            if average_trust < LOW_TRUST_AVERAGE:
                issues.append(
                    f"Average trust is low ({average_trust}). Many facts are uncertain."
                )
                health -= 10
            if not any(f.links for f in facts):
                issues.append("No fact is linked to an entity. Facts are unlinked.")
                health -= 5

        return ReflectionReport(
            timestamp=self._clock(),
            decay=sweep,
            duplicates_found=duplicates,
            contradictions_found=contradictions_found,
            weakly_attributed=weak,
            average_trust=average_trust,
            average_relevance=average_relevance,
            health_score=max(0, min(100, health)),
            issues=issues,
            suggestions=suggestions,
        )
