"""
Formula extraction over one streamed AI turn.

    AWAITING_TEXT -> BLOCK_FOUND -> PARSED -> NORMALIZED -> VALIDATED -> ACCEPTED | REJECTED
    AWAITING_TEXT -> NO_FORMULA          (stream ended without a formula block)
    BLOCK_FOUND   -> EXTRACTION_ERROR    (block is not a usable formula)

One pipeline instance per turn. Catalog, normalizer, validator, expander and screener
are read-only and may be shared between pipelines running concurrently.
Nothing here raises into the chat turn: parse failures become EXTRACTION_ERROR.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from formula_core.catalog import IngredientCatalog, get_default_catalog
from formula_core.config import AUTO_EXPAND_ENABLED, MIN_INGREDIENT_COUNT
from formula_core.evaluation import FormulaExpander, FormulaValidator, capsule_budget, format_mg
from formula_core.interactions import INTERACTION_DISCLAIMER, InteractionScreener, get_default_screener
from formula_core.models import CandidateFormula, ExpansionResult, ValidationResult
from formula_core.normalization import NameNormalizer
from formula_core.parsing import (
    FormulaParseError,
    extract_capsule_count_from_message,
    extract_formula_block,
    parse_formula_block,
    strip_structured_blocks,
)

logger = logging.getLogger(__name__)


class ExtractionState(str, Enum):
    AWAITING_TEXT = "AWAITING_TEXT"
    BLOCK_FOUND = "BLOCK_FOUND"
    PARSED = "PARSED"
    NORMALIZED = "NORMALIZED"
    VALIDATED = "VALIDATED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    NO_FORMULA = "NO_FORMULA"
    EXTRACTION_ERROR = "EXTRACTION_ERROR"


TERMINAL_STATES = frozenset(
    {ExtractionState.ACCEPTED, ExtractionState.REJECTED, ExtractionState.NO_FORMULA, ExtractionState.EXTRACTION_ERROR}
)


@dataclass
class ExtractionOutcome:
    status: ExtractionState
    formula: Optional[CandidateFormula] = None
    errors: list[str] = field(default_factory=list)
    advisories: list[str] = field(default_factory=list)
    corrections: list[str] = field(default_factory=list)
    interaction_warnings: list[str] = field(default_factory=list)
    expansion: ExpansionResult = field(default_factory=ExpansionResult)
    validation: Optional[ValidationResult] = None
    state_trail: list[ExtractionState] = field(default_factory=list)
    display_text: str = ""

    @property
    def accepted(self) -> bool:
        return self.status == ExtractionState.ACCEPTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "formula": self.formula.to_dict() if self.formula else None,
            "errors": list(self.errors),
            "advisories": list(self.advisories),
            "corrections": list(self.corrections),
            "interactionWarnings": list(self.interaction_warnings),
            "expansion": self.expansion.to_dict(),
            "stateTrail": [s.value for s in self.state_trail],
            "displayText": self.display_text,
        }


class FormulaExtractionPipeline:
    def __init__(
        self,
        catalog: Optional[IngredientCatalog] = None,
        normalizer: Optional[NameNormalizer] = None,
        validator: Optional[FormulaValidator] = None,
        expander: Optional[FormulaExpander] = None,
        screener: Optional[InteractionScreener] = None,
        auto_expand: Optional[bool] = None,
    ):
        self._catalog = catalog or get_default_catalog()
        self._normalizer = normalizer or NameNormalizer(self._catalog)
        self._validator = validator or FormulaValidator(self._catalog, self._normalizer)
        self._expander = expander or FormulaExpander(self._catalog, self._normalizer)
        self._screener = screener or get_default_screener()
        self._auto_expand = AUTO_EXPAND_ENABLED if auto_expand is None else auto_expand
        self._buffer: list[str] = []
        self._block: Optional[str] = None
        self._state = ExtractionState.AWAITING_TEXT
        self._trail: list[ExtractionState] = [ExtractionState.AWAITING_TEXT]
        self._outcome: Optional[ExtractionOutcome] = None

    @property
    def state(self) -> ExtractionState:
        return self._state

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    def _advance(self, state: ExtractionState) -> None:
        self._state = state
        self._trail.append(state)

    def feed(self, chunk: str) -> ExtractionState:
        """Append a streamed chunk. Moves to BLOCK_FOUND once a complete fenced block is present."""
        if self._state in TERMINAL_STATES:
            raise RuntimeError(f"Pipeline already finished with {self._state.value}")
        if chunk:
            self._buffer.append(chunk)
        if self._state == ExtractionState.AWAITING_TEXT:
            block = extract_formula_block(self.text)
            if block is not None:
                self._block = block
                self._advance(ExtractionState.BLOCK_FOUND)
                logger.info("FORMULA_EXTRACT block_found chars=%d", len(block))
        return self._state

    def _finish(self, status: ExtractionState, **kwargs: Any) -> ExtractionOutcome:
        self._advance(status)
        self._outcome = ExtractionOutcome(
            status=status,
            state_trail=list(self._trail),
            display_text=strip_structured_blocks(self.text),
            **kwargs,
        )
        return self._outcome

    def _normalize_names(self, formula: CandidateFormula) -> list[str]:
        corrections: list[str] = []
        for line in formula.lines():
            raw = line.ingredient_name
            canonical = self._normalizer.normalize(raw)
            # Unmatched names keep their raw spelling so validation reports exactly what was proposed
            if canonical and self._catalog.contains(canonical) and canonical != raw:
                corrections.append(f'Corrected "{raw}" to "{canonical}"')
                line.ingredient_name = canonical
        return corrections

    def finish(self, user_message: str = "", medications: Optional[list[str]] = None) -> ExtractionOutcome:
        """End of stream. Runs parse -> normalize -> expand -> validate -> screen."""
        if self._outcome is not None:
            return self._outcome
        if self._state == ExtractionState.AWAITING_TEXT:
            logger.debug("FORMULA_EXTRACT no_formula chars=%d", len(self.text))
            return self._finish(ExtractionState.NO_FORMULA)

        try:
            formula = parse_formula_block(self._block or "")
        except FormulaParseError as e:
            logger.warning("FORMULA_EXTRACT parse_failed error=%s", e)
            return self._finish(ExtractionState.EXTRACTION_ERROR, errors=[str(e)])

        capsules = extract_capsule_count_from_message(user_message)
        if capsules is not None:
            if formula.target_capsules != capsules:
                logger.info("FORMULA_EXTRACT capsule_override from=%s to=%d", formula.target_capsules, capsules)
            formula.target_capsules = capsules
        self._advance(ExtractionState.PARSED)

        corrections = self._normalize_names(formula)
        formula.recompute_total()
        self._advance(ExtractionState.NORMALIZED)

        advisories = list(corrections)
        expansion = ExpansionResult()
        if self._auto_expand and formula.ingredient_count() < MIN_INGREDIENT_COUNT:
            expansion = self._expander.expand(formula)
            if expansion.expanded:
                advisories.append(
                    f"Auto-added {len(expansion.added_ingredients)} ingredient(s) to reach the minimum of "
                    f"{MIN_INGREDIENT_COUNT}: {', '.join(expansion.added_ingredients)}"
                )
        formula.recompute_total()

        budget = capsule_budget(formula.target_capsules)
        if formula.ingredient_count() < MIN_INGREDIENT_COUNT:
            advisories.append(
                f"Formula has {formula.ingredient_count()} ingredient(s), below the minimum of "
                f"{MIN_INGREDIENT_COUNT}; the {budget.capsule_count}-capsule budget leaves no room for more."
            )
        if formula.total_mg > budget.max_with_tolerance_mg:
            # Noted, never truncated; validation reports the budget error
            advisories.append(
                f"Formula total of {format_mg(formula.total_mg)}mg is "
                f"{format_mg(formula.total_mg - budget.max_with_tolerance_mg)}mg over the "
                f"{budget.capsule_count}-capsule limit of {budget.max_with_tolerance_mg}mg."
            )

        validation = self._validator.validate(formula)
        self._advance(ExtractionState.VALIDATED)
        interaction_warnings = self._screener.screen(formula, medications)
        combination_warnings = self._screener.screen_combinations(formula)
        advisories.extend(combination_warnings)
        if interaction_warnings or combination_warnings:
            advisories.append(INTERACTION_DISCLAIMER)

        status = ExtractionState.ACCEPTED if validation.valid else ExtractionState.REJECTED
        logger.info(
            "FORMULA_EXTRACT status=%s lines=%d total_mg=%s capsules=%d corrections=%d added=%d errors=%d "
            "warnings=%d combinations=%d",
            status.value, formula.ingredient_count(), format_mg(formula.total_mg), budget.capsule_count,
            len(corrections), len(expansion.added_ingredients), len(validation.errors),
            len(interaction_warnings), len(combination_warnings),
        )
        return self._finish(
            status,
            formula=formula,
            errors=list(validation.errors),
            advisories=advisories,
            corrections=corrections,
            interaction_warnings=interaction_warnings,
            expansion=expansion,
            validation=validation,
        )

    def run(self, text: str, user_message: str = "", medications: Optional[list[str]] = None) -> ExtractionOutcome:
        """Whole-text convenience: feed once, then finish."""
        self.feed(text)
        return self.finish(user_message, medications)
