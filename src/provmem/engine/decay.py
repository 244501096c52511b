"""Decay engine — time- and usage-adjusted relevance.

Relevance erodes exponentially with idle time::

    days = (now - last_used_at) / 86400
    d = 1 / (1 + use_count * usage_dampening)
    relevance = clamp(exp(-decay_rate * days * time_scale * d), 0, 1)

Frequent use slows decay with diminishing returns; only ``protected``
stops it.  Sweeps run on demand: the caller decides the cadence.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger
from provmem.config import DecayConfig
from provmem.memory.base import FactStore
from provmem.models.facts import DecayTier
from provmem.models.facts import Fact
from provmem.models.schemas import SweepResult
from provmem.observability import track_latency

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400.0

_TIER_ORDER: tuple[DecayTier, ...] = (DecayTier.hot, DecayTier.warm, DecayTier.cold)


def days_idle(fact: Fact, now: float) -> float:
    return max(now - fact.lifecycle.last_used_at, 0.0) / SECONDS_PER_DAY


def compute_relevance(
    fact: Fact, now: float, config: DecayConfig | None = None
) -> float:
    """Relevance of *fact* at *now*.  Protected facts are always 1.0."""
    if fact.protected:
        return 1.0
    cfg = config or DecayConfig()
    dampening = 1.0 / (1.0 + fact.lifecycle.use_count * cfg.usage_dampening)
    exponent = -fact.decay_rate * days_idle(fact, now) * cfg.time_scale * dampening
    return min(max(math.exp(exponent), 0.0), 1.0)


def decay_tier(fact: Fact, now: float, config: DecayConfig | None = None) -> DecayTier:
    """Classify *fact* as hot / warm / cold by idle time.

    Facts used at least ``promotion_use_count`` times move one tier
    toward hot.
    """
    cfg = config or DecayConfig()
    idle = days_idle(fact, now)
    if idle <= cfg.hot_max_days:
        tier = DecayTier.hot
    elif idle <= cfg.warm_max_days:
        tier = DecayTier.warm
    else:
        tier = DecayTier.cold

    if fact.lifecycle.use_count >= cfg.promotion_use_count:
        idx = _TIER_ORDER.index(tier)
        tier = _TIER_ORDER[max(idx - 1, 0)]
    return tier


class DecayEngine:
    """Sweeps unprotected facts and rewrites their relevance."""

    def __init__(
        self,
        store: FactStore,
        *,
        config: DecayConfig | None = None,
        lock: asyncio.Lock | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._config = config or DecayConfig()
        self._lock = lock or asyncio.Lock()
        self._audit = audit_logger
        self._clock = clock or time.time

    async def sweep(self) -> SweepResult:
        """Recompute relevance for every unprotected fact.

        Only changed values are written, all in one atomic batch: a failed
        sweep leaves every relevance untouched.  Facts falling below the
        archive threshold are counted, never deleted.
        """
        with track_latency("decay.sweep"):
            async with self._lock:
                now = self._clock()
                facts = [f for f in await self._store.all_facts() if not f.protected]

                changes: dict[str, dict[str, float]] = {}
                archived = 0
                for fact in facts:
                    relevance = compute_relevance(fact, now, self._config)
                    if relevance < self._config.archive_threshold:
                        archived += 1
                    if relevance != fact.relevance:
                        changes[fact.id] = {"relevance": relevance}

                if changes:
                    await self._store.update_facts(changes)

            result = SweepResult(
                updated_count=len(changes),
                archived_count=archived,
                scanned_count=len(facts),
            )
            logger.info(
                "Decay sweep scanned=%d updated=%d archived=%d",
                result.scanned_count,
                result.updated_count,
                result.archived_count,
            )
            if self._audit is not None:
                await self._audit.record(
                    AuditEventType.DECAY_SWEEP, **result.model_dump()
                )
            return result

    def relevance(self, fact: Fact) -> float:
        return compute_relevance(fact, self._clock(), self._config)

    def tier(self, fact: Fact) -> DecayTier:
        return decay_tier(fact, self._clock(), self._config)
