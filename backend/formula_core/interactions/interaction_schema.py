"""
Interaction rules. Data-driven; matching is keyword containment.

InteractionRule: medication x ingredient. CombinationRule: ingredients that
interact with each other inside one formula.
"""
from dataclasses import dataclass


def _keywords(values) -> tuple[str, ...]:
    return tuple(k.strip().lower() for k in values or [] if k and k.strip())


@dataclass(frozen=True)
class InteractionRule:
    id: str
    medication_keywords: tuple[str, ...]
    ingredient_keywords: tuple[str, ...]
    message: str

    def matches_medication(self, medication: str) -> bool:
        med = (medication or "").lower()
        return any(k in med for k in self.medication_keywords)

    def matches_ingredient(self, ingredient: str) -> bool:
        ing = (ingredient or "").lower()
        return any(k in ing for k in self.ingredient_keywords)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "medicationKeywords": list(self.medication_keywords),
            "ingredientKeywords": list(self.ingredient_keywords),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "InteractionRule":
        return cls(
            id=d["id"],
            medication_keywords=_keywords(d.get("medicationKeywords")),
            ingredient_keywords=_keywords(d.get("ingredientKeywords")),
            message=d.get("message", ""),
        )


@dataclass(frozen=True)
class CombinationRule:
    """Fires when at least min_matches distinct keywords each match some ingredient."""

    id: str
    ingredient_keywords: tuple[str, ...]
    message: str
    min_matches: int = 2

    def matched_keywords(self, ingredients: list[str]) -> list[str]:
        names = [(i or "").lower() for i in ingredients]
        return [k for k in self.ingredient_keywords if any(k in n for n in names)]

    def matches(self, ingredients: list[str]) -> bool:
        return len(self.matched_keywords(ingredients)) >= self.min_matches

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredientKeywords": list(self.ingredient_keywords),
            "minMatches": self.min_matches,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CombinationRule":
        return cls(
            id=d["id"],
            ingredient_keywords=_keywords(d.get("ingredientKeywords")),
            message=d.get("message", ""),
            min_matches=int(d.get("minMatches", 2)),
        )
