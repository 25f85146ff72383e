"""
Turns extraction outcomes into chat events and formulas into prompt text.
Event shapes match what the chat client already consumes:
processing, info, formula_extracted, error.
"""
import logging
from typing import Any, Dict, List

from formula_core.evaluation import capsule_budget, format_mg
from formula_core.models import CandidateFormula, FormulaLine
from formula_core.pipeline.extraction_pipeline import ExtractionOutcome, ExtractionState

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = "Formula detected! Validating recommendations..."
EXTRACTION_ERROR_MESSAGE = "Sorry, I couldn't process the formula in that response. Please ask me to try again."


def compose_outcome_events(outcome: ExtractionOutcome) -> List[Dict[str, Any]]:
    """Ordered chat events for one outcome. Empty when the reply had no formula."""
    if outcome.status == ExtractionState.NO_FORMULA:
        return []

    events: List[Dict[str, Any]] = [{"type": "processing", "message": PROCESSING_MESSAGE}]
    if outcome.status == ExtractionState.EXTRACTION_ERROR:
        events.append({"type": "error", "error": EXTRACTION_ERROR_MESSAGE})
        return events

    if outcome.corrections:
        events.append({"type": "info", "message": f"Auto-corrected {len(outcome.corrections)} ingredient name(s)"})
    for warning in outcome.interaction_warnings:
        events.append({"type": "info", "message": warning})
    # Advisories end with the interaction disclaimer when any warning fired
    for advisory in outcome.advisories:
        if advisory in outcome.corrections:
            continue
        events.append({"type": "info", "message": advisory})

    if outcome.status == ExtractionState.ACCEPTED and outcome.formula is not None:
        events.append({
            "type": "formula_extracted",
            "formula": outcome.formula.to_dict(),
            "interactionWarnings": list(outcome.interaction_warnings),
        })
    else:
        events.append({"type": "error", "error": f"Formula validation failed: {', '.join(outcome.errors)}"})
    return events


def _line_text(line: FormulaLine) -> str:
    text = f"- {line.ingredient_name}: {format_mg(line.amount_mg)}mg"
    if line.purpose:
        text += f" ({line.purpose})"
    return text


def format_formula_summary(formula: CandidateFormula) -> str:
    """Plain-text formula for revision prompts. Total is recomputed, not read."""
    budget = capsule_budget(formula.target_capsules)
    total = formula.computed_total_mg()
    parts = [f"Current formula ({budget.capsule_count} capsules/day, budget {budget.max_dosage_mg}mg):"]
    if formula.bases:
        parts.append("Bases:")
        parts.extend(_line_text(line) for line in formula.bases)
    if formula.additions:
        parts.append("Additions:")
        parts.extend(_line_text(line) for line in formula.additions)
    parts.append(f"Total: {format_mg(total)}mg")
    return "\n".join(parts)
