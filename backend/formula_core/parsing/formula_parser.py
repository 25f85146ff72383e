"""
Parses the formula block the AI embeds in its reply:

    ```json
    {"bases": [{"ingredient": "Heart Support", "amount": 450, "unit": "mg"}],
     "additions": [...], "targetCapsules": 9}
    ```

The payload is untrusted. It goes through a permissive pydantic model first
(ingredient or name key, numeric strings, mg/g/mcg units, unknown keys ignored)
and comes out as a CandidateFormula with amounts in mg and totalMg recomputed.
Names are not normalized here.
"""
import json
import logging
import math
import re
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from formula_core.models import CandidateFormula, FormulaLine, LineRole

logger = logging.getLogger(__name__)

FORMULA_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
# Other fenced payloads the AI may emit; never shown to the user
_STRUCTURED_BLOCK_RES = [
    re.compile(r"```json[\s\S]*?```"),
    re.compile(r"```health-data[\s\S]*?```"),
    re.compile(r"```capsule-recommendation[\s\S]*?```"),
]
_DOSE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(mg|g|mcg|µg|ug)?", re.IGNORECASE)

UNIT_TO_MG = {"mg": 1.0, "g": 1000.0, "mcg": 0.001, "µg": 0.001, "ug": 0.001}


class FormulaParseError(ValueError):
    """Extracted block is not a usable formula (bad JSON, wrong shape, bad field)."""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_mg(amount: float, unit: str = "mg") -> float:
    """Convert to mg. Converted values are rounded to whole mg; mg values pass through."""
    unit_key = (unit or "mg").strip().lower()
    if unit_key not in UNIT_TO_MG:
        raise ValueError(f"Unsupported unit {unit!r}")
    if unit_key == "mg":
        return amount
    return _round_half_up(amount * UNIT_TO_MG[unit_key])


def parse_dose_to_mg(dose: str) -> int:
    """
    "1.5 g" -> 1500, "500mcg" -> 1, "200" -> 200. Returns 0 when no number is found.
    """
    if not dose:
        return 0
    match = _DOSE_RE.search(str(dose))
    if not match:
        return 0
    value = float(match.group(1))
    unit = (match.group(2) or "mg").lower()
    return _round_half_up(value * UNIT_TO_MG[unit])


class FormulaLinePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    ingredient: str = Field(validation_alias=AliasChoices("ingredient", "name"))
    amount: float
    unit: Optional[str] = "mg"
    purpose: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def split_amount_with_unit(cls, data: Any) -> Any:
        # "amount": "1.5 g" -> amount=1.5, unit="g"
        if isinstance(data, dict) and isinstance(data.get("amount"), str):
            match = _DOSE_RE.fullmatch(data["amount"].strip())
            if match:
                data = dict(data)
                data["amount"] = match.group(1)
                if match.group(2):
                    data["unit"] = match.group(2)
        return data

    @field_validator("ingredient")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("ingredient name is empty")
        return v.strip()

    @field_validator("unit")
    @classmethod
    def known_unit(cls, v: Optional[str]) -> str:
        unit = (v or "mg").strip().lower()
        if unit not in UNIT_TO_MG:
            raise ValueError(f"unsupported unit {v!r}")
        return unit

    def to_line(self, role: LineRole) -> FormulaLine:
        return FormulaLine(
            ingredient_name=self.ingredient,
            amount_mg=to_mg(self.amount, self.unit),
            role=role,
            unit="mg",
            purpose=self.purpose or "",
        )


class FormulaPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    bases: list[FormulaLinePayload] = Field(default_factory=list)
    additions: list[FormulaLinePayload] = Field(default_factory=list)
    # Accepted for compatibility; always recomputed
    total_mg: Optional[float] = Field(default=None, validation_alias=AliasChoices("totalMg", "total_mg"))
    target_capsules: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("targetCapsules", "target_capsules")
    )
    rationale: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    disclaimers: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def has_lines(self) -> "FormulaPayload":
        if not self.bases and not self.additions:
            raise ValueError("formula has no bases or additions")
        return self

    def to_formula(self) -> CandidateFormula:
        formula = CandidateFormula(
            bases=[p.to_line(LineRole.BASE) for p in self.bases],
            additions=[p.to_line(LineRole.ADDITION) for p in self.additions],
            target_capsules=self.target_capsules,
            rationale=self.rationale or "",
            warnings=list(self.warnings),
            disclaimers=list(self.disclaimers),
        )
        formula.recompute_total()
        return formula


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_formula_payload(data: Any) -> CandidateFormula:
    """Dict (already decoded JSON) -> CandidateFormula. Raises FormulaParseError."""
    if not isinstance(data, dict):
        raise FormulaParseError(f"Formula payload must be a JSON object, got {type(data).__name__}")
    try:
        payload = FormulaPayload.model_validate(data)
    except ValidationError as e:
        raise FormulaParseError(f"Invalid formula payload: {_describe(e)}") from e
    try:
        return payload.to_formula()
    except OverflowError as e:
        # e.g. 1e308 g: finite as given, infinite once converted to mg
        raise FormulaParseError(f"Invalid formula payload: amount out of range ({e})") from e


def parse_formula_block(block: str) -> CandidateFormula:
    """Raw block contents -> CandidateFormula. Raises FormulaParseError."""
    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise FormulaParseError(f"Formula block is not valid JSON: {e.msg} (line {e.lineno})") from e
    return parse_formula_payload(data)


def extract_formula_block(text: str) -> Optional[str]:
    """Contents of the first complete ```json fenced block, or None."""
    match = FORMULA_BLOCK_RE.search(text or "")
    return match.group(1) if match else None


def strip_structured_blocks(text: str) -> str:
    """Remove json/health-data/capsule-recommendation blocks from assistant text before display or storage."""
    out = text or ""
    for pattern in _STRUCTURED_BLOCK_RES:
        out = pattern.sub("", out)
    return out.strip()
