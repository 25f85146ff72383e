"""
Candidate formula and engine results. One format for validation, expansion and chat.
totalMg is always re-derived from the lines; a total supplied by the AI is never trusted.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class LineRole(str, Enum):
    BASE = "base"
    ADDITION = "addition"


@dataclass
class FormulaLine:
    ingredient_name: str
    amount_mg: float
    role: LineRole = LineRole.ADDITION
    unit: str = "mg"
    purpose: str = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "ingredient": self.ingredient_name,
            "amount": self.amount_mg,
            "unit": self.unit,
        }
        if self.purpose:
            d["purpose"] = self.purpose
        return d

    @classmethod
    def from_dict(cls, d: dict, role: LineRole = LineRole.ADDITION) -> "FormulaLine":
        return cls(
            ingredient_name=str(d.get("ingredient") or d.get("name") or "").strip(),
            amount_mg=float(d.get("amount", 0) or 0),
            role=role,
            unit=d.get("unit") or "mg",
            purpose=d.get("purpose") or "",
        )


@dataclass
class CandidateFormula:
    """
    Mutable unit the engine operates on. Built fresh per AI turn.
    rationale/warnings/disclaimers are passed through untouched for the chat layer.
    """
    bases: list[FormulaLine] = field(default_factory=list)
    additions: list[FormulaLine] = field(default_factory=list)
    total_mg: float = 0
    target_capsules: Optional[int] = None
    rationale: str = ""
    warnings: list[str] = field(default_factory=list)
    disclaimers: list[str] = field(default_factory=list)

    def lines(self) -> list[FormulaLine]:
        return list(self.bases) + list(self.additions)

    def ingredient_count(self) -> int:
        return len(self.bases) + len(self.additions)

    def computed_total_mg(self) -> float:
        return sum(line.amount_mg for line in self.lines())

    def recompute_total(self) -> float:
        """Overwrite total_mg from the current line list."""
        self.total_mg = self.computed_total_mg()
        return self.total_mg

    def ingredient_names(self) -> list[str]:
        return [line.ingredient_name for line in self.lines()]

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "bases": [line.to_dict() for line in self.bases],
            "additions": [line.to_dict() for line in self.additions],
            "totalMg": self.total_mg,
        }
        if self.target_capsules is not None:
            d["targetCapsules"] = self.target_capsules
        if self.rationale:
            d["rationale"] = self.rationale
        if self.warnings:
            d["warnings"] = list(self.warnings)
        if self.disclaimers:
            d["disclaimers"] = list(self.disclaimers)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "CandidateFormula":
        formula = cls(
            bases=[FormulaLine.from_dict(x, LineRole.BASE) for x in d.get("bases") or []],
            additions=[FormulaLine.from_dict(x, LineRole.ADDITION) for x in d.get("additions") or []],
            target_capsules=d.get("targetCapsules"),
            rationale=d.get("rationale") or "",
            warnings=list(d.get("warnings") or []),
            disclaimers=list(d.get("disclaimers") or []),
        )
        formula.recompute_total()
        return formula


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass
class ExpansionResult:
    expanded: bool = False
    added_ingredients: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"expanded": self.expanded, "addedIngredients": list(self.added_ingredients)}
