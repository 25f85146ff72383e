"""
Loads interaction rules from data/interactions.json and screens a formula against
the user's medication list and against combinations within the formula itself.
Warnings are advisory only: they never change a validation result.
"""
from pathlib import Path
from typing import Optional
import json
import logging

from .interaction_schema import CombinationRule, InteractionRule
from formula_core.catalog import CatalogError, IngredientCatalog, get_default_catalog
from formula_core.config import get_interactions_path
from formula_core.models import CandidateFormula

logger = logging.getLogger(__name__)

INTERACTION_DISCLAIMER = (
    "IMPORTANT: These are potential interactions. "
    "Always consult your healthcare provider before starting new supplements."
)


def _read_rules_file(rules_path: Optional[Path] = None) -> dict:
    path = rules_path or get_interactions_path()
    if not path.exists():
        logger.error("INTERACTIONS_LOAD missing file path=%s", path)
        raise CatalogError(f"Interaction rules file not found at {path}")
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_interaction_rules(rules_path: Optional[Path] = None) -> list[InteractionRule]:
    data = _read_rules_file(rules_path)
    rules = [InteractionRule.from_dict(item) for item in data.get("rules", [])]
    logger.info("Loaded %d interaction rules", len(rules))
    return rules


def load_combination_rules(rules_path: Optional[Path] = None) -> list[CombinationRule]:
    data = _read_rules_file(rules_path)
    rules = [CombinationRule.from_dict(item) for item in data.get("combinations", [])]
    logger.info("Loaded %d combination rules", len(rules))
    return rules


def _check_keywords_in_catalog(rule_id: str, keywords: tuple[str, ...], catalog: IngredientCatalog) -> None:
    names = [n.lower() for n in catalog.names()]
    for keyword in keywords:
        if not any(keyword in n for n in names):
            raise CatalogError(f"Interaction rule {rule_id!r} keyword {keyword!r} matches no catalog ingredient")


def _check_rules(
    rules: list[InteractionRule], combinations: list[CombinationRule], catalog: IngredientCatalog
) -> None:
    seen: set[str] = set()
    for rule in [*rules, *combinations]:
        if rule.id in seen:
            raise CatalogError(f"Duplicate interaction rule id: {rule.id!r}")
        seen.add(rule.id)
        if not rule.message:
            raise CatalogError(f"Interaction rule {rule.id!r} has no message")
    for rule in rules:
        if not rule.medication_keywords or not rule.ingredient_keywords:
            raise CatalogError(f"Interaction rule {rule.id!r} needs medication and ingredient keywords")
        _check_keywords_in_catalog(rule.id, rule.ingredient_keywords, catalog)
    for combo in combinations:
        if combo.min_matches < 2 or len(combo.ingredient_keywords) < combo.min_matches:
            raise CatalogError(
                f"Combination rule {combo.id!r} needs at least {max(combo.min_matches, 2)} keywords"
            )
        _check_keywords_in_catalog(combo.id, combo.ingredient_keywords, catalog)


def _unique(messages: list[str]) -> list[str]:
    return list(dict.fromkeys(messages))


class InteractionScreener:
    def __init__(
        self,
        rules: Optional[list[InteractionRule]] = None,
        rules_path: Optional[Path] = None,
        combinations: Optional[list[CombinationRule]] = None,
        catalog: Optional[IngredientCatalog] = None,
    ):
        if rules is None:
            self._rules = load_interaction_rules(rules_path)
            self._combinations = list(combinations) if combinations is not None else load_combination_rules(rules_path)
        else:
            self._rules = list(rules)
            self._combinations = list(combinations or [])
        _check_rules(self._rules, self._combinations, catalog or get_default_catalog())

    @property
    def rules(self) -> list[InteractionRule]:
        return list(self._rules)

    @property
    def combinations(self) -> list[CombinationRule]:
        return list(self._combinations)

    def screen(self, formula: CandidateFormula, medications: Optional[list[str]] = None) -> list[str]:
        """One warning per matched rule, in rule-table order. Empty without medications."""
        meds = [m for m in (medications or []) if m and m.strip()]
        if not meds:
            return []
        ingredients = formula.ingredient_names()
        warnings: list[str] = []
        for rule in self._rules:
            if not any(rule.matches_medication(m) for m in meds):
                continue
            if any(rule.matches_ingredient(i) for i in ingredients):
                warnings.append(rule.message)
                logger.info("INTERACTION_MATCH rule=%s", rule.id)
        return _unique(warnings)

    def screen_combinations(self, formula: CandidateFormula) -> list[str]:
        """Ingredient-to-ingredient warnings: one per matched combination rule, in table order."""
        ingredients = formula.ingredient_names()
        warnings: list[str] = []
        for combo in self._combinations:
            matched = combo.matched_keywords(ingredients)
            if len(matched) >= combo.min_matches:
                warnings.append(combo.message)
                logger.info("COMBINATION_MATCH rule=%s keywords=%s", combo.id, ",".join(matched))
        return _unique(warnings)


_default_screener: Optional[InteractionScreener] = None


def get_default_screener() -> InteractionScreener:
    global _default_screener
    if _default_screener is None:
        _default_screener = InteractionScreener()
    return _default_screener


def screen_interactions(formula: CandidateFormula, medications: Optional[list[str]] = None) -> list[str]:
    return get_default_screener().screen(formula, medications)


def screen_combinations(formula: CandidateFormula) -> list[str]:
    return get_default_screener().screen_combinations(formula)
