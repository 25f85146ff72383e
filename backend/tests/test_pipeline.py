"""
End-to-end extraction over AI reply text: state machine, capsule override,
name corrections, expansion, validation, interaction screening.
Run from backend: python -m pytest tests/test_pipeline.py -v
"""
import sys
import os
import json

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from formula_core.catalog import get_default_catalog
from formula_core.interactions import INTERACTION_DISCLAIMER, InteractionScreener
from formula_core.normalization import NameNormalizer
from formula_core.pipeline import ExtractionState, FormulaExtractionPipeline

S = ExtractionState


@pytest.fixture(scope="module")
def shared():
    catalog = get_default_catalog()
    return {"catalog": catalog, "normalizer": NameNormalizer(catalog), "screener": InteractionScreener()}


@pytest.fixture
def pipeline(shared):
    return FormulaExtractionPipeline(auto_expand=True, **shared)


def reply(payload, prose="Based on your labs, here is what I recommend."):
    return f"{prose}\n\n```json\n{json.dumps(payload, indent=2)}\n```\n\nLet me know what you think!"


def line(name, amount, **extra):
    return {"ingredient": name, "amount": amount, "unit": "mg", **extra}


THREE_ADJUSTABLES = {"additions": [line("GABA", 100), line("Quercetin", 100), line("Rosemary", 100)]}


class TestNoFormula:
    def test_plain_reply(self, pipeline):
        outcome = pipeline.run("How have you been sleeping lately?")
        assert outcome.status == S.NO_FORMULA
        assert outcome.formula is None
        assert outcome.errors == []
        assert outcome.state_trail == [S.AWAITING_TEXT, S.NO_FORMULA]

    def test_other_fences_are_not_formulas(self, pipeline):
        outcome = pipeline.run('Noted.\n```health-data\n{"sleepHours": 6}\n```')
        assert outcome.status == S.NO_FORMULA
        assert outcome.display_text == "Noted."


class TestStreaming:
    def test_block_found_only_when_fence_closes(self, pipeline):
        text = reply(THREE_ADJUSTABLES)
        close = text.rindex("```")
        states = []
        for i in range(0, len(text), 7):
            states.append((i + 7, pipeline.feed(text[i:i + 7])))
        for end, state in states:
            if end < close + 3:
                assert state == S.AWAITING_TEXT
            else:
                assert state == S.BLOCK_FOUND
        assert pipeline.finish().status == S.ACCEPTED

    def test_feed_after_finish_raises(self, pipeline):
        pipeline.run("No formula here.")
        with pytest.raises(RuntimeError):
            pipeline.feed("more")

    def test_finish_is_idempotent(self, pipeline):
        pipeline.feed(reply(THREE_ADJUSTABLES))
        first = pipeline.finish()
        assert pipeline.finish() is first


class TestExtractionError:
    def test_malformed_json(self, pipeline):
        outcome = pipeline.run('Here you go:\n```json\n{"additions": [{"ingredient": "Garlic",}\n```')
        assert outcome.status == S.EXTRACTION_ERROR
        assert outcome.formula is None
        assert "not valid JSON" in outcome.errors[0]
        assert outcome.state_trail == [S.AWAITING_TEXT, S.BLOCK_FOUND, S.EXTRACTION_ERROR]
        assert outcome.display_text == "Here you go:"

    def test_nan_amount_is_not_accepted(self, shared):
        names = ["Garlic", "GABA", "Quercetin", "Rosemary", "Milk Thistle", "Resveratrol", "Magnesium", "Vitamin C"]
        payload = {"additions": [line(n, 100) for n in names]}
        payload["additions"][0]["amount"] = float("nan")
        text = reply(payload)
        assert "NaN" in text
        outcome = FormulaExtractionPipeline(auto_expand=False, **shared).run(text)
        assert outcome.status == S.EXTRACTION_ERROR
        assert outcome.formula is None

    def test_wrong_shape(self, pipeline):
        outcome = pipeline.run(reply(["Garlic", "GABA"]))
        assert outcome.status == S.EXTRACTION_ERROR


class TestAccepted:
    def test_three_ingredients_expanded_and_accepted(self, pipeline):
        outcome = pipeline.run(reply(THREE_ADJUSTABLES))
        assert outcome.status == S.ACCEPTED
        assert outcome.accepted
        assert len(outcome.expansion.added_ingredients) == 5
        assert outcome.formula.ingredient_count() == 8
        assert outcome.formula.target_capsules is None
        assert outcome.formula.total_mg == outcome.formula.computed_total_mg()
        assert any(a.startswith("Auto-added 5 ingredient(s)") for a in outcome.advisories)
        assert outcome.state_trail == [
            S.AWAITING_TEXT, S.BLOCK_FOUND, S.PARSED, S.NORMALIZED, S.VALIDATED, S.ACCEPTED,
        ]

    def test_display_text_has_no_block(self, pipeline):
        outcome = pipeline.run(reply(THREE_ADJUSTABLES, prose="Here it is."))
        assert "```" not in outcome.display_text
        assert outcome.display_text.startswith("Here it is.")


class TestNameCorrections:
    def test_alias_corrected_and_misspelling_rejected(self, pipeline):
        payload = {"additions": [line("CoQ10", 100), line("Omage-3", 50), line("Garlic", 150)]}
        outcome = pipeline.run(reply(payload))
        assert 'Corrected "CoQ10" to "CoEnzyme Q10"' in outcome.corrections
        assert "CoEnzyme Q10" in outcome.formula.ingredient_names()
        assert "Omage-3" in outcome.formula.ingredient_names()
        assert outcome.status == S.REJECTED
        assert 'Unapproved ingredient: "Omage-3"' in outcome.errors

    def test_exact_names_not_reported_as_corrections(self, pipeline):
        outcome = pipeline.run(reply(THREE_ADJUSTABLES))
        assert outcome.corrections == []


class TestCapsuleOverride:
    PAYLOAD = {"bases": [line("Chaga Mix", 3600), line("Beta Max", 2500)]}

    def test_user_message_raises_budget(self, pipeline):
        outcome = pipeline.run(reply(self.PAYLOAD), user_message="I'll take 12 capsules")
        assert outcome.formula.target_capsules == 12
        assert outcome.status == S.ACCEPTED
        assert outcome.formula.total_mg <= 6930

    def test_without_override_default_budget_applies(self, pipeline):
        outcome = pipeline.run(reply(self.PAYLOAD))
        assert outcome.formula.target_capsules is None
        assert outcome.status == S.REJECTED
        assert any("9-capsule budget of 4950mg" in e for e in outcome.errors)

    def test_override_replaces_block_value(self, pipeline):
        payload = dict(self.PAYLOAD, targetCapsules=6)
        outcome = pipeline.run(reply(payload), user_message="ok let's go with 12")
        assert outcome.formula.target_capsules == 12

    def test_unsupported_count_in_message_ignored(self, pipeline):
        payload = dict(THREE_ADJUSTABLES, targetCapsules=6)
        outcome = pipeline.run(reply(payload), user_message="I'll take 7 capsules")
        assert outcome.formula.target_capsules == 6


class TestBudgetAndCount:
    def test_over_budget_noted_not_truncated(self, pipeline):
        payload = {"bases": [line("Chaga Mix", 10800)], "targetCapsules": 6}
        outcome = pipeline.run(reply(payload))
        assert outcome.status == S.REJECTED
        assert outcome.formula.ingredient_count() == 1
        assert outcome.formula.total_mg == 10800
        assert any("over the 6-capsule limit of 3465mg" in a for a in outcome.advisories)
        assert any("6-capsule budget of 3300mg" in e for e in outcome.errors)

    def test_expansion_disabled(self, shared):
        pipeline = FormulaExtractionPipeline(auto_expand=False, **shared)
        outcome = pipeline.run(reply(THREE_ADJUSTABLES))
        assert outcome.expansion.added_ingredients == []
        assert outcome.formula.ingredient_count() == 3
        assert any("below the minimum of 8" in a for a in outcome.advisories)


class TestInteractions:
    def test_warning_does_not_block(self, pipeline):
        payload = {"additions": [line("Garlic", 150), line("GABA", 100), line("Quercetin", 100)]}
        outcome = pipeline.run(reply(payload), medications=["Warfarin"])
        assert outcome.status == S.ACCEPTED
        assert len(outcome.interaction_warnings) == 1
        assert "bleeding risk" in outcome.interaction_warnings[0]

    def test_no_medications(self, pipeline):
        outcome = pipeline.run(reply(THREE_ADJUSTABLES))
        assert outcome.interaction_warnings == []

    def test_combination_advisory_without_medications(self, pipeline):
        # Garlic, Ginkgo and Ginger all arrive as fillers
        outcome = pipeline.run(reply(THREE_ADJUSTABLES))
        assert outcome.status == S.ACCEPTED
        assert outcome.interaction_warnings == []
        assert any("bleeding risk" in a for a in outcome.advisories)
        assert outcome.advisories[-1] == INTERACTION_DISCLAIMER

    def test_disclaimer_added_once(self, pipeline):
        payload = {"additions": [line("Garlic", 150), line("GABA", 100), line("Quercetin", 100)]}
        outcome = pipeline.run(reply(payload), medications=["Warfarin"])
        assert outcome.advisories.count(INTERACTION_DISCLAIMER) == 1
        assert outcome.advisories[-1] == INTERACTION_DISCLAIMER

    def test_no_disclaimer_without_warnings(self, shared):
        payload = {"additions": [line("GABA", 100), line("Quercetin", 100), line("Rosemary", 100)]}
        outcome = FormulaExtractionPipeline(auto_expand=False, **shared).run(reply(payload))
        assert INTERACTION_DISCLAIMER not in outcome.advisories


def test_outcome_to_dict(pipeline):
    d = pipeline.run(reply(THREE_ADJUSTABLES)).to_dict()
    assert d["status"] == "ACCEPTED"
    assert d["formula"]["totalMg"] == 4760
    assert len(d["expansion"]["addedIngredients"]) == 5
    assert d["stateTrail"][-1] == "ACCEPTED"
