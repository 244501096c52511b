"""Pairwise decision rules over two fact snapshots.

Both rules are pure and return tagged results so they can be tested
without a store:

- ``check_independence`` -> ``Independent`` | ``Dependent``
- ``detect_contradiction`` -> ``NoConflict`` | ``Conflict``
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from provmem.config import DEFAULT_NEGATION_PAIRS
from provmem.models.facts import Fact
from provmem.text import contains_term
from provmem.text import jaccard
from provmem.text import strip_term

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Independent:
    """The two facts come from independent sources."""

    reason: str


@dataclass(frozen=True)
class Dependent:
    """The two facts share a source; agreement proves nothing."""

    reason: str


@dataclass(frozen=True)
class NoConflict:
    """No contradiction detected."""

    reason: str = ""


@dataclass(frozen=True)
class Conflict:
    """A negation pair splits two related facts."""

    reason: str
    positive: str
    negative: str
    similarity: float


IndependenceVerdict = Independent | Dependent
ConflictVerdict = NoConflict | Conflict


# ---------------------------------------------------------------------------
# Independence
# ---------------------------------------------------------------------------


def check_independence(a: Fact, b: Fact) -> IndependenceVerdict:
    """Sources are independent when kind, actor or context differ.

    Actor and context only count when both sides carry one.
    """
    pa, pb = a.provenance, b.provenance
    if pa.kind != pb.kind:
        return Independent(f"different provenance kinds ({pa.kind.value} vs {pb.kind.value})")
    if pa.actor and pb.actor and pa.actor != pb.actor:
        return Independent(f"different actors ({pa.actor} vs {pb.actor})")
    if pa.context and pb.context and pa.context != pb.context:
        return Independent("different learning contexts")
    return Dependent(f"same {pa.kind.value} source")


# ---------------------------------------------------------------------------
# Contradiction
# ---------------------------------------------------------------------------


def _normalize(text: str) -> str:
    return text.casefold().replace("’", "'")


def _has_positive(text: str, positive: str, negatives: Sequence[str]) -> bool:
    # "is" inside "is not" or "isn't" is not an affirmation
    for negative in negatives:
        text = strip_term(text, negative)
    return contains_term(text, positive)


def detect_contradiction(
    a: Fact,
    b: Fact,
    *,
    negation_pairs: Sequence[tuple[str, str]] = DEFAULT_NEGATION_PAIRS,
    similarity_floor: float = 0.3,
    token_length: int = 3,
) -> ConflictVerdict:
    """Flag *a* and *b* when one affirms what the other negates.

    Only facts about the same topic are compared: they must share an
    entity link and a category.  A negation pair only counts when the two
    texts are also lexically similar beyond *similarity_floor*, which keeps
    unrelated facts that happen to contain "yes" and "no" apart.
    """
    if not a.links & b.links:
        return NoConflict("no shared entity")
    if a.category != b.category:
        return NoConflict("different categories")

    text_a, text_b = _normalize(a.content), _normalize(b.content)
    similarity: float | None = None

    for positive, negative in negation_pairs:
        negatives = [n for p, n in negation_pairs if p == positive]
        split = (
            _has_positive(text_a, positive, negatives) and contains_term(text_b, negative)
        ) or (
            contains_term(text_a, negative) and _has_positive(text_b, positive, negatives)
        )
        if not split:
            continue
        if similarity is None:
            similarity = jaccard(text_a, text_b, min_length=token_length)
        if similarity > similarity_floor:
            return Conflict(
                reason=f'Potential negation: "{positive}" vs "{negative}" in related facts',
                positive=positive,
                negative=negative,
                similarity=similarity,
            )
    return NoConflict()
