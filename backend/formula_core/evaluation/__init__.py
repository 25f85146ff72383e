from .budget import (
    CapsuleBudget,
    capsule_budget,
    is_valid_capsule_count,
    max_dosage,
    max_with_tolerance,
    resolve_capsule_count,
)
from .validator import FormulaValidator, format_mg, validate_formula
from .expander import FILLER_INGREDIENTS, Filler, FormulaExpander, expand_formula

__all__ = [
    "CapsuleBudget",
    "capsule_budget",
    "is_valid_capsule_count",
    "max_dosage",
    "max_with_tolerance",
    "resolve_capsule_count",
    "FormulaValidator",
    "format_mg",
    "validate_formula",
    "FILLER_INGREDIENTS",
    "Filler",
    "FormulaExpander",
    "expand_formula",
]
