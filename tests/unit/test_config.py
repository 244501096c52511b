"""Unit tests for configuration dataclasses."""

from dataclasses import FrozenInstanceError

import pytest

from provmem.config import AuditConfig
from provmem.config import ConfidenceConfig
from provmem.config import CorroborationConfig
from provmem.config import DecayConfig
from provmem.config import EmbeddingConfig
from provmem.config import RecallConfig
from provmem.config import StoreConfig


# ---------------------------------------------------------------------------
# ConfidenceConfig
# ---------------------------------------------------------------------------


class TestConfidenceConfig:
    def test_defaults(self):
        cfg = ConfidenceConfig()
        assert cfg.base_score_for("experienced") == 0.9
        assert cfg.base_score_for("observed") == 0.8
        assert cfg.base_score_for("told") == 0.6
        assert cfg.base_score_for("read") == 0.5
        assert cfg.base_score_for("inferred") == 0.4
        assert cfg.context_bonus == 0.05
        assert cfg.score_digits == 2

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="No calibration entry"):
            ConfidenceConfig().base_score_for("rumour")


# ---------------------------------------------------------------------------
# DecayConfig
# ---------------------------------------------------------------------------


class TestDecayConfig:
    def test_defaults(self):
        cfg = DecayConfig()
        assert cfg.time_scale == 0.01
        assert cfg.usage_dampening == 0.3
        assert cfg.archive_threshold == 0.05
        assert cfg.hot_max_days == 7.0
        assert cfg.warm_max_days == 30.0
        assert cfg.promotion_use_count == 10

    def test_category_rates(self):
        cfg = DecayConfig()
        assert cfg.decay_rate_for("fact") == 0.1
        assert cfg.decay_rate_for("procedure") == 0.15
        assert cfg.decay_rate_for("relationship") == 0.2
        assert cfg.decay_rate_for("preference") == 0.25
        assert cfg.decay_rate_for("event") == 0.3
        assert cfg.decay_rate_for("opinion") == 0.35
        assert cfg.decay_rate_for("observation") == 0.4


# ---------------------------------------------------------------------------
# CorroborationConfig
# ---------------------------------------------------------------------------


class TestCorroborationConfig:
    def test_defaults(self):
        cfg = CorroborationConfig()
        assert cfg.corroboration_threshold == 0.5
        assert cfg.verify_threshold == 0.4
        assert cfg.contradiction_similarity_floor == 0.3
        assert cfg.boost_scale == 0.1
        assert cfg.diminishing_factor == 0.3
        assert cfg.verify_step == 0.05

    def test_source_weights_descend_with_source_strength(self):
        cfg = CorroborationConfig()
        weights = [
            cfg.source_weight_for(kind)
            for kind in ("experienced", "observed", "told", "read", "inferred")
        ]
        assert weights == [1.5, 1.2, 1.0, 0.8, 0.5]

    def test_negation_table_includes_enabled_disabled(self):
        assert ("enabled", "disabled") in CorroborationConfig().negation_pairs


# ---------------------------------------------------------------------------
# RecallConfig / EmbeddingConfig / StoreConfig / AuditConfig
# ---------------------------------------------------------------------------


class TestRecallConfig:
    def test_defaults(self):
        cfg = RecallConfig()
        assert cfg.default_limit == 10
        assert cfg.noise_floor == 0.15
        assert cfg.semantic_threshold == 0.5
        assert cfg.semantic_weight + cfg.lexical_weight_with_semantic + cfg.entity_weight_with_semantic == pytest.approx(1.0)
        assert cfg.lexical_weight + cfg.entity_weight == pytest.approx(1.0)
        assert cfg.context_boost == 0.3

    @pytest.mark.parametrize(("limit", "expected"), [(0, 10), (-3, 10), (7, 7), (100, 100), (500, 100)])
    def test_clamp_limit(self, limit, expected):
        assert RecallConfig().clamp_limit(limit) == expected


class TestEmbeddingConfig:
    def test_defaults(self):
        cfg = EmbeddingConfig()
        assert cfg.provider == "none"
        assert cfg.api_key is None
        assert cfg.base_url == "https://api.openai.com/v1"
        assert cfg.cache is True


class TestStoreConfig:
    def test_defaults(self):
        assert StoreConfig().key_prefix == "provmem"


class TestAuditConfig:
    def test_defaults(self):
        cfg = AuditConfig()
        assert cfg.file_path == "provmem_audit.jsonl"
        assert cfg.enabled is True


# ---------------------------------------------------------------------------
# Immutability
# ---------------------------------------------------------------------------


class TestConfigImmutability:
    def test_confidence_config_frozen(self):
        cfg = ConfidenceConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.context_bonus = 0.1

    def test_decay_config_frozen(self):
        cfg = DecayConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.archive_threshold = 0.5

    def test_recall_config_frozen(self):
        cfg = RecallConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.noise_floor = 0.0

    def test_audit_config_frozen(self):
        cfg = AuditConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.enabled = False

    def test_configs_are_hashable(self):
        assert hash(DecayConfig()) == hash(DecayConfig())
