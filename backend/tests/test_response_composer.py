"""
Chat events and formula summaries built from extraction outcomes.
Run from backend: python -m pytest tests/test_response_composer.py -v
"""
import sys
import os
import json

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from formula_core.interactions import INTERACTION_DISCLAIMER
from formula_core.models import CandidateFormula, FormulaLine, LineRole
from formula_core.pipeline import FormulaExtractionPipeline
from formula_core.response_composer import (
    EXTRACTION_ERROR_MESSAGE,
    compose_outcome_events,
    format_formula_summary,
)


def _outcome(text, **kwargs):
    return FormulaExtractionPipeline(auto_expand=True).run(text, **kwargs)


def _reply(payload):
    return f"Here you go.\n```json\n{json.dumps(payload)}\n```"


def test_no_formula_no_events():
    assert compose_outcome_events(_outcome("Tell me more about your energy levels.")) == []


def test_extraction_error_events():
    events = compose_outcome_events(_outcome("```json\n{broken\n```"))
    assert [e["type"] for e in events] == ["processing", "error"]
    assert events[1]["error"] == EXTRACTION_ERROR_MESSAGE


def test_accepted_with_correction():
    payload = {"additions": [
        {"ingredient": "CoQ10", "amount": 100},
        {"ingredient": "GABA", "amount": 100},
        {"ingredient": "Rosemary", "amount": 100},
    ]}
    events = compose_outcome_events(_outcome(_reply(payload)))
    assert events[0]["type"] == "processing"
    assert events[1] == {"type": "info", "message": "Auto-corrected 1 ingredient name(s)"}
    assert events[-1]["type"] == "formula_extracted"
    assert events[-1]["formula"]["totalMg"] > 0
    # The correction text itself is summarized, not repeated
    assert not any("Corrected" in e.get("message", "") for e in events)


def test_interaction_warnings_surface_as_info():
    payload = {"additions": [{"ingredient": "Garlic", "amount": 150}]}
    events = compose_outcome_events(_outcome(_reply(payload), medications=["Plavix"]))
    assert any(e["type"] == "info" and "bleeding risk" in e["message"] for e in events)
    assert events[-1]["interactionWarnings"]


def test_rejected_error_lists_all_errors():
    payload = {"additions": [{"ingredient": "Omage-3", "amount": 50}, {"ingredient": "Garlic", "amount": 900}]}
    events = compose_outcome_events(_outcome(_reply(payload)))
    last = events[-1]
    assert last["type"] == "error"
    assert last["error"].startswith("Formula validation failed: ")
    assert 'Unapproved ingredient: "Omage-3"' in last["error"]
    assert '"Garlic" exceeds allowed maximum' in last["error"]


def test_formula_summary():
    formula = CandidateFormula(
        bases=[FormulaLine("Heart Support", 450, LineRole.BASE)],
        additions=[FormulaLine("Garlic", 150, LineRole.ADDITION, purpose="cardio")],
        target_capsules=6,
        total_mg=1,
    )
    summary = format_formula_summary(formula)
    assert summary.splitlines() == [
        "Current formula (6 capsules/day, budget 3300mg):",
        "Bases:",
        "- Heart Support: 450mg",
        "Additions:",
        "- Garlic: 150mg (cardio)",
        "Total: 600mg",
    ]


def test_disclaimer_is_last_info_event():
    payload = {"additions": [{"ingredient": "Garlic", "amount": 150}]}
    events = compose_outcome_events(_outcome(_reply(payload), medications=["Warfarin"]))
    infos = [e["message"] for e in events if e["type"] == "info"]
    assert infos[-1] == INTERACTION_DISCLAIMER
    assert infos.index(next(m for m in infos if "blood thinner" in m)) < infos.index(INTERACTION_DISCLAIMER)
