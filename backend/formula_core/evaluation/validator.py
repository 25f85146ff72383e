"""
Deterministic formula validation. Every check runs on every call; all violations
are reported together. Pure: the formula is never mutated and totalMg is
recomputed from the lines instead of read from the input.
"""
import logging
import math
from typing import Optional

from formula_core.catalog import CatalogEntry, IngredientCatalog, get_default_catalog
from formula_core.config import (
    BUDGET_TOLERANCE_PERCENT,
    MAX_INGREDIENT_COUNT,
    MIN_INGREDIENT_DOSE_MG,
    VALID_CAPSULE_COUNTS,
)
from formula_core.evaluation.budget import capsule_budget, is_valid_capsule_count
from formula_core.models import CandidateFormula, FormulaLine, ValidationResult
from formula_core.normalization import NameNormalizer

logger = logging.getLogger(__name__)


def format_mg(value: float) -> str:
    """5000.0 -> "5000", 12.5 -> "12.5"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _bundle_error(entry: CatalogEntry, amount_mg: float) -> str:
    options = [f"{k}x ({format_mg(entry.dose_mg * k)}mg)" for k in entry.dose_multiples]
    if len(options) > 1:
        allowed = ", ".join(options[:-1]) + ", or " + options[-1]
    else:
        allowed = options[0]
    return (
        f'System support "{entry.name}" must be dosed at {allowed}. '
        f"Attempted: {format_mg(amount_mg)}mg."
    )


class FormulaValidator:
    """Validates a candidate formula against the catalog and the capsule budget."""

    def __init__(
        self,
        catalog: Optional[IngredientCatalog] = None,
        normalizer: Optional[NameNormalizer] = None,
    ):
        self._catalog = catalog or get_default_catalog()
        self._normalizer = normalizer or NameNormalizer(self._catalog)

    def _check_line(self, line: FormulaLine) -> list[str]:
        errors: list[str] = []
        amount = line.amount_mg
        entry = self._normalizer.resolve(line.ingredient_name)
        if entry is None:
            errors.append(f'Unapproved ingredient: "{line.ingredient_name}"')
        if not math.isfinite(amount):
            # NaN compares false against every bound below
            errors.append(f'Ingredient "{line.ingredient_name}" has an invalid amount: {amount}')
            return errors
        if amount < MIN_INGREDIENT_DOSE_MG:
            errors.append(
                f'Ingredient "{line.ingredient_name}" below minimum dose of {MIN_INGREDIENT_DOSE_MG}mg '
                f"(attempted: {format_mg(amount)}mg)"
            )
        if entry is None:
            return errors
        if entry.is_bundle:
            if not entry.allows_dose(amount):
                errors.append(_bundle_error(entry, amount))
        elif entry.has_range:
            allowed = f"Allowed range: {format_mg(entry.dose_range_min)}-{format_mg(entry.dose_range_max)}mg"
            if amount < entry.dose_range_min:
                errors.append(
                    f'"{entry.name}" below allowed minimum of {format_mg(entry.dose_range_min)}mg '
                    f"(attempted: {format_mg(amount)}mg). {allowed}"
                )
            elif amount > entry.dose_range_max:
                errors.append(
                    f'"{entry.name}" exceeds allowed maximum of {format_mg(entry.dose_range_max)}mg '
                    f"(attempted: {format_mg(amount)}mg). {allowed}"
                )
        return errors

    def validate(self, formula: CandidateFormula) -> ValidationResult:
        errors: list[str] = []
        lines = formula.lines()

        for line in lines:
            errors.extend(self._check_line(line))

        # Below-minimum count is resolved by the expander, not reported here
        if len(lines) > MAX_INGREDIENT_COUNT:
            errors.append(
                f"Formula exceeds maximum ingredient count of {MAX_INGREDIENT_COUNT} (attempted: {len(lines)})"
            )

        total = formula.computed_total_mg()
        budget = capsule_budget(formula.target_capsules)
        if total > budget.max_with_tolerance_mg:
            errors.append(
                f"Formula exceeds {budget.capsule_count}-capsule budget of {budget.max_dosage_mg}mg "
                f"(max {budget.max_with_tolerance_mg}mg with {round(BUDGET_TOLERANCE_PERCENT * 100)}% tolerance). "
                f"Attempted: {format_mg(total)}mg. Reduce ingredients or increase capsule count."
            )

        if formula.target_capsules is not None and not is_valid_capsule_count(formula.target_capsules):
            errors.append(
                f"Invalid capsule count: {formula.target_capsules}. "
                f"Must be one of: {', '.join(str(c) for c in VALID_CAPSULE_COUNTS)}"
            )

        logger.info(
            "FORMULA_VALIDATE valid=%s errors=%d lines=%d total_mg=%s capsules=%s",
            not errors, len(errors), len(lines), format_mg(total), budget.capsule_count,
        )
        return ValidationResult(valid=not errors, errors=errors)


_default_validator: Optional[FormulaValidator] = None


def validate_formula(formula: CandidateFormula) -> ValidationResult:
    """Validate against the default catalog."""
    global _default_validator
    if _default_validator is None:
        _default_validator = FormulaValidator()
    return _default_validator.validate(formula)
