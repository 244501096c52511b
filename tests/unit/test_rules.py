"""Unit tests for the independence and contradiction rules."""

from __future__ import annotations

import pytest

from provmem.engine.rules import check_independence
from provmem.engine.rules import Conflict
from provmem.engine.rules import Dependent
from provmem.engine.rules import detect_contradiction
from provmem.engine.rules import Independent
from provmem.engine.rules import NoConflict
from provmem.memory import create_fact
from provmem.models import Fact


def _fact(
    content: str = "The payment gateway is healthy",
    kind: str = "told",
    category: str = "fact",
    **kwargs,
) -> Fact:
    return create_fact(content, kind, category, **kwargs)


class TestIndependence:
    def test_same_source_is_dependent(self):
        a = _fact(actor="shaun", context="standup")
        b = _fact(actor="shaun", context="standup")
        assert isinstance(check_independence(a, b), Dependent)

    def test_different_kinds_are_independent(self):
        verdict = check_independence(_fact(kind="told"), _fact(kind="experienced"))
        assert isinstance(verdict, Independent)
        assert "told vs experienced" in verdict.reason

    def test_different_actors_are_independent(self):
        verdict = check_independence(_fact(actor="shaun"), _fact(actor="maria"))
        assert isinstance(verdict, Independent)

    def test_different_contexts_are_independent(self):
        verdict = check_independence(
            _fact(actor="shaun", context="standup"),
            _fact(actor="shaun", context="incident review"),
        )
        assert isinstance(verdict, Independent)

    def test_missing_actor_on_one_side_does_not_count(self):
        verdict = check_independence(_fact(actor="shaun"), _fact())
        assert isinstance(verdict, Dependent)

    def test_symmetric(self):
        a, b = _fact(kind="read"), _fact(kind="observed")
        assert type(check_independence(a, b)) is type(check_independence(b, a))


class TestContradiction:
    def test_enabled_versus_disabled(self):
        a = _fact("the service is enabled", links=["svc"])
        b = _fact("the service is disabled", links=["svc"])
        verdict = detect_contradiction(a, b)

        assert isinstance(verdict, Conflict)
        assert (verdict.positive, verdict.negative) == ("enabled", "disabled")
        assert verdict.similarity == pytest.approx(1 / 3)
        assert verdict.reason == 'Potential negation: "enabled" vs "disabled" in related facts'

    def test_order_does_not_matter(self):
        a = _fact("the service is enabled", links=["svc"])
        b = _fact("the service is disabled", links=["svc"])
        assert isinstance(detect_contradiction(b, a), Conflict)

    def test_requires_shared_entity(self):
        a = _fact("the service is enabled", links=["svc"])
        b = _fact("the service is disabled", links=["other"])
        assert detect_contradiction(a, b) == NoConflict("no shared entity")

    def test_requires_same_category(self):
        a = _fact("the service is enabled", links=["svc"])
        b = _fact("the service is disabled", "told", "opinion", links=["svc"])
        assert detect_contradiction(a, b) == NoConflict("different categories")

    def test_unrelated_yes_and_no_are_not_flagged(self):
        a = _fact("yes the nightly backup finished", links=["ops"])
        b = _fact("no coffee left in kitchen", links=["ops"])
        assert isinstance(detect_contradiction(a, b), NoConflict)

    def test_negated_phrase_is_not_an_affirmation(self):
        a = _fact("the cache layer is not warm", links=["cache"])
        b = _fact("the cache layer is not warm today", links=["cache"])
        assert isinstance(detect_contradiction(a, b), NoConflict)

    def test_two_spellings_of_the_same_negation_agree(self):
        a = _fact("The backup service is not running", links=["backup"])
        b = _fact("The backup service isn't running", links=["backup"])
        assert isinstance(detect_contradiction(a, b), NoConflict)
        assert isinstance(detect_contradiction(b, a), NoConflict)

    def test_spelled_out_negation_still_conflicts_with_affirmation(self):
        a = _fact("The backup service is running", links=["backup"])
        b = _fact("The backup service is not running", links=["backup"])
        verdict = detect_contradiction(a, b)
        assert isinstance(verdict, Conflict)
        assert verdict.negative == "is not"

    def test_substring_is_not_a_match(self):
        # "this" contains "is" but is not the word "is"
        a = _fact("this release isn't stable", links=["rel"])
        b = _fact("this release seems stable", links=["rel"])
        assert isinstance(detect_contradiction(a, b), NoConflict)

    def test_typographic_apostrophe(self):
        a = _fact("The gateway isn’t stable", links=["gw"])
        b = _fact("The gateway is stable", links=["gw"])
        verdict = detect_contradiction(a, b)
        assert isinstance(verdict, Conflict)
        assert verdict.negative == "isn't"

    def test_custom_negation_table(self):
        a = _fact("the feature flag is on for beta", links=["flag"])
        b = _fact("the feature flag is off for beta", links=["flag"])
        assert isinstance(detect_contradiction(a, b), NoConflict)
        verdict = detect_contradiction(a, b, negation_pairs=(("on", "off"),))
        assert isinstance(verdict, Conflict)
