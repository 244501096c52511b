"""Unit tests for initial trust assessment."""

from __future__ import annotations

import pytest

from provmem.config import ConfidenceConfig
from provmem.engine.confidence import ConfidenceModel
from provmem.engine.confidence import initial_trust
from provmem.memory import create_fact
from provmem.models import Provenance
from provmem.models import ProvenanceKind

_STRONGEST_FIRST = ["experienced", "observed", "told", "read", "inferred"]


class TestInitialTrust:
    @pytest.mark.parametrize("has_context", [False, True])
    def test_scores_strictly_descend_by_source_strength(self, has_context):
        scores = [initial_trust(kind, has_context)[0] for kind in _STRONGEST_FIRST]
        assert all(a > b for a, b in zip(scores, scores[1:]))

    @pytest.mark.parametrize("kind", _STRONGEST_FIRST)
    def test_context_never_lowers_the_score(self, kind):
        without, _ = initial_trust(kind, False)
        with_context, _ = initial_trust(kind, True)
        assert with_context > without or with_context == 1.0

    def test_context_bonus_is_capped(self):
        config = ConfidenceConfig(base_scores=(("experienced", 0.98),))
        score, _ = initial_trust("experienced", True, config)
        assert score == 1.0

    def test_rationale_trail(self):
        score, rationale = initial_trust(ProvenanceKind.read, True)
        assert score == 0.55
        assert rationale == ["read source (base: 0.5)", "has source context"]

    def test_unknown_kind_is_a_programmer_error(self):
        with pytest.raises(ValueError, match="Unknown provenance kind"):
            initial_trust("rumour", False)

    def test_deterministic(self):
        assert initial_trust("observed", True) == initial_trust("observed", True)


class TestConfidenceModel:
    def test_assess_records_actor_without_changing_score(self):
        model = ConfidenceModel()
        trust = model.assess(Provenance(kind=ProvenanceKind.told, actor="shaun"))
        assert trust.score == 0.6
        assert trust.rationale == ["told source (base: 0.6)", "from: shaun"]
        assert trust.support_count == 0
        assert trust.conflict_count == 0

    def test_injected_calibration(self):
        config = ConfidenceConfig(
            base_scores=(
                ("experienced", 0.5),
                ("observed", 0.5),
                ("told", 0.9),
                ("read", 0.5),
                ("inferred", 0.5),
            )
        )
        trust = ConfidenceModel(config).assess(Provenance(kind=ProvenanceKind.told))
        assert trust.score == 0.9


class TestAttributionScenario:
    def test_told_by_named_actor_without_context(self):
        fact = create_fact("Shaun prefers tea over coffee", "told", "preference", actor="shaun")
        assert fact.trust.score == 0.60

    def test_told_by_named_actor_with_context(self):
        fact = create_fact(
            "Shaun prefers tea over coffee",
            "told",
            "preference",
            actor="shaun",
            context="morning standup",
        )
        assert fact.trust.score == 0.65
