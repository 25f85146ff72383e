from .formula_parser import (
    FORMULA_BLOCK_RE,
    FormulaLinePayload,
    FormulaParseError,
    FormulaPayload,
    extract_formula_block,
    parse_dose_to_mg,
    parse_formula_block,
    parse_formula_payload,
    strip_structured_blocks,
    to_mg,
)
from .capsule_intent import CAPSULE_PHRASE_PATTERNS, extract_capsule_count_from_message

__all__ = [
    "FORMULA_BLOCK_RE",
    "FormulaLinePayload",
    "FormulaParseError",
    "FormulaPayload",
    "extract_formula_block",
    "parse_dose_to_mg",
    "parse_formula_block",
    "parse_formula_payload",
    "strip_structured_blocks",
    "to_mg",
    "CAPSULE_PHRASE_PATTERNS",
    "extract_capsule_count_from_message",
]
