"""Confidence model — initial trust from provenance.

Turns a provenance kind (plus whether a learning context is known) into
an initial trust score and a human-readable rationale trail.  Pure: no
I/O, deterministic for identical inputs.
"""

from __future__ import annotations

from provmem.config import ConfidenceConfig
from provmem.models.facts import Provenance
from provmem.models.facts import ProvenanceKind
from provmem.models.facts import Trust

_DEFAULT_CONFIG = ConfidenceConfig()


def _coerce_kind(kind: ProvenanceKind | str) -> ProvenanceKind:
    """Parse *kind*; an unknown kind is a programmer error."""
    try:
        return ProvenanceKind(kind)
    except ValueError:
        msg = f"Unknown provenance kind: {kind!r}"
        raise ValueError(msg) from None


def initial_trust(
    kind: ProvenanceKind | str,
    has_context: bool,
    config: ConfidenceConfig | None = None,
) -> tuple[float, list[str]]:
    """Return ``(score, rationale)`` for a freshly learned fact.

    Experienced > Observed > Told > Read > Inferred.  A known learning
    context adds a flat bonus, capped at 1.0.  The score is rounded to
    ``config.score_digits`` decimals.
    """
    cfg = config or _DEFAULT_CONFIG
    parsed = _coerce_kind(kind)
    base = cfg.base_score_for(parsed.value)
    rationale = [f"{parsed.value} source (base: {base})"]

    score = base
    if has_context:
        score += cfg.context_bonus
        rationale.append("has source context")

    return round(min(score, 1.0), cfg.score_digits), rationale


class ConfidenceModel:
    """Builds ``Trust`` records with an injected calibration."""

    def __init__(self, config: ConfidenceConfig | None = None) -> None:
        self._config = config or _DEFAULT_CONFIG

    @property
    def config(self) -> ConfidenceConfig:
        return self._config

    def initial_trust(
        self, kind: ProvenanceKind | str, has_context: bool
    ) -> tuple[float, list[str]]:
        return initial_trust(kind, has_context, self._config)

    def assess(self, provenance: Provenance) -> Trust:
        """Build the initial ``Trust`` for *provenance*.

        The actor, when present, is recorded in the rationale but does not
        change the score.
        """
        score, rationale = self.initial_trust(
            provenance.kind, bool(provenance.context)
        )
        if provenance.actor:
            rationale.insert(1, f"from: {provenance.actor}")
        return Trust(score=score, rationale=rationale)
