"""Tokenization and similarity helpers shared by the engines and stores.

All helpers are pure.  Every ratio guards its denominator and returns
``0.0`` instead of raising or producing NaN.
"""

from __future__ import annotations

import math
import re
import string
from collections.abc import Iterable
from collections.abc import Sequence

_WORD_RE = re.compile(r"[a-z0-9]+")
_EDGE_PUNCTUATION = string.punctuation + "“”‘’"


def keyword_tokens(text: str, *, min_length: int = 2) -> set[str]:
    """Lowercase alphanumeric tokens longer than *min_length*.

    These feed the keyword indexes; short words like "on" or "is" would
    match almost every fact.
    """
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) > min_length}


def word_tokens(text: str, *, min_length: int = 0) -> list[str]:
    """Case-folded whitespace tokens with edge punctuation stripped.

    Only tokens strictly longer than *min_length* are kept.
    """
    tokens: list[str] = []
    for raw in text.casefold().split():
        token = raw.strip(_EDGE_PUNCTUATION)
        if len(token) > min_length:
            tokens.append(token)
    return tokens


def similarity_tokens(text: str, *, min_length: int = 3) -> set[str]:
    return set(word_tokens(text, min_length=min_length))


def significant_tokens(text: str, *, min_length: int = 4) -> list[str]:
    """Distinct tokens longer than *min_length*, in first-seen order."""
    seen: dict[str, None] = {}
    for token in word_tokens(text, min_length=min_length):
        seen.setdefault(token, None)
    return list(seen)


def jaccard(a: str, b: str, *, min_length: int = 3) -> float:
    """Jaccard similarity over case-folded tokens longer than *min_length*."""
    return jaccard_sets(
        similarity_tokens(a, min_length=min_length),
        similarity_tokens(b, min_length=min_length),
    )


def jaccard_sets(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = len(set_a | set_b)
    if union == 0:
        return 0.0
    return len(set_a & set_b) / union


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; mismatched or zero-length vectors score ``0.0``."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    denom = norm_a * norm_b
    if denom == 0.0 or not math.isfinite(denom):
        return 0.0
    return dot / denom


def lexical_match_score(
    query: str,
    content: str,
    summary: str | None = None,
    *,
    min_term_length: int = 2,
) -> float:
    """Fraction of query terms found in the content, in ``[0, 1]``.

    A content hit counts 1, a summary hit 0.5.  An exact-phrase hit on the
    content adds a bonus equal to the term count.  The total is divided by
    twice the term count and clamped to 1.
    """
    query_lower = query.lower().strip()
    content_lower = content.lower()
    summary_lower = (summary or "").lower()

    terms = [t for t in query_lower.split() if len(t) > min_term_length]
    if not terms:
        return 0.0

    matches = 0.0
    for term in terms:
        if term in content_lower:
            matches += 1.0
        if summary_lower and term in summary_lower:
            matches += 0.5

    if query_lower in content_lower:
        matches += len(terms)

    return min(1.0, matches / (len(terms) * 2))


def contains_term(text: str, term: str) -> bool:
    """Whole-word (or whole-phrase) match of *term* inside *text*."""
    return _term_pattern(term).search(text) is not None


def strip_term(text: str, term: str) -> str:
    """Remove whole-word occurrences of *term* from *text*."""
    return _term_pattern(term).sub(" ", text)


def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w']){re.escape(term)}(?![\w'])")
