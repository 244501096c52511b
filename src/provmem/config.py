"""Calibration and wiring settings for the engines, store and server.

Every component takes one frozen dataclass at construction.  Values are
plain defaults; the environment is only read by ``provmem.server.main``.

Calibration tables are tuples of pairs so instances stay hashable; look
values up with the ``*_for`` helpers.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Calibration tables
# ---------------------------------------------------------------------------

DEFAULT_BASE_SCORES: tuple[tuple[str, float], ...] = (
    ("experienced", 0.90),
    ("observed", 0.80),
    ("told", 0.60),
    ("read", 0.50),
    ("inferred", 0.40),
)

DEFAULT_SOURCE_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("experienced", 1.5),
    ("observed", 1.2),
    ("told", 1.0),
    ("read", 0.8),
    ("inferred", 0.5),
)

DEFAULT_CATEGORY_DECAY: tuple[tuple[str, float], ...] = (
    ("fact", 0.10),
    ("procedure", 0.15),
    ("relationship", 0.20),
    ("preference", 0.25),
    ("event", 0.30),
    ("opinion", 0.35),
    ("observation", 0.40),
)

# (positive, negative) surface forms
DEFAULT_NEGATION_PAIRS: tuple[tuple[str, str], ...] = (
    ("is", "isn't"),
    ("is", "is not"),
    ("can", "can't"),
    ("can", "cannot"),
    ("does", "doesn't"),
    ("does", "does not"),
    ("should", "shouldn't"),
    ("should", "should not"),
    ("works", "doesn't work"),
    ("working", "not working"),
    ("true", "false"),
    ("yes", "no"),
    ("enabled", "disabled"),
)


def _lookup(table: tuple[tuple[str, float], ...], key: str) -> float:
    for name, value in table:
        if name == key:
            return value
    msg = f"No calibration entry for {key!r}"
    raise ValueError(msg)


# ---------------------------------------------------------------------------
# Component configs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfidenceConfig:
    """Initial trust calibration by provenance kind."""

    base_scores: tuple[tuple[str, float], ...] = DEFAULT_BASE_SCORES
    context_bonus: float = 0.05
    score_digits: int = 2

    def base_score_for(self, kind: str) -> float:
        return _lookup(self.base_scores, kind)


@dataclass(frozen=True)
class DecayConfig:
    """Relevance decay and tier classification parameters."""

    category_decay: tuple[tuple[str, float], ...] = DEFAULT_CATEGORY_DECAY
    time_scale: float = 0.01
    usage_dampening: float = 0.3
    archive_threshold: float = 0.05
    hot_max_days: float = 7.0
    warm_max_days: float = 30.0
    promotion_use_count: int = 10

    def decay_rate_for(self, category: str) -> float:
        return _lookup(self.category_decay, category)


@dataclass(frozen=True)
class CorroborationConfig:
    """Thresholds for corroboration, verification and contradiction scans."""

    source_weights: tuple[tuple[str, float], ...] = DEFAULT_SOURCE_WEIGHTS
    negation_pairs: tuple[tuple[str, str], ...] = DEFAULT_NEGATION_PAIRS
    corroboration_threshold: float = 0.5
    verify_threshold: float = 0.4
    contradiction_similarity_floor: float = 0.3
    boost_scale: float = 0.1
    diminishing_factor: float = 0.3
    verify_step: float = 0.05
    # Tokens strictly longer than these lengths are kept
    significant_token_length: int = 4
    similarity_token_length: int = 3
    entity_candidate_limit: int = 20
    text_candidate_limit: int = 10
    contradiction_scan_size: int = 200

    def source_weight_for(self, kind: str) -> float:
        return _lookup(self.source_weights, kind)


@dataclass(frozen=True)
class RecallConfig:
    """Channel fusion weights, filters and limits for recall."""

    default_limit: int = 10
    max_limit: int = 100
    default_min_trust: float = 0.3
    default_min_relevance: float = 0.1
    noise_floor: float = 0.15
    semantic_threshold: float = 0.5
    semantic_weight: float = 0.5
    lexical_weight_with_semantic: float = 0.3
    entity_weight_with_semantic: float = 0.2
    lexical_weight: float = 0.7
    entity_weight: float = 0.3
    context_boost: float = 0.3
    lexical_term_length: int = 2
    context_token_length: int = 3
    embedding_timeout_seconds: float = 5.0

    def clamp_limit(self, limit: int) -> int:
        """Non-positive limits fall back to the default, large ones to the cap."""
        if limit < 1:
            return self.default_limit
        return min(limit, self.max_limit)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Similarity provider settings used by the recall engine."""

    provider: str = "none"
    model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 10.0
    cache: bool = True


@dataclass(frozen=True)
class StoreConfig:
    """Redis key layout for the persistent fact store."""

    key_prefix: str = "provmem"


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "provmem_audit.jsonl"
    enabled: bool = True
