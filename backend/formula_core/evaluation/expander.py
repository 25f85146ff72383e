"""
Deterministic top-up of under-specified formulas.

Fillers are walked in a fixed order, first at their normal dose and then at their
minimum dose, until the formula reaches MIN_INGREDIENT_COUNT or the budget runs out.
If the result is still below the capsule budget, the remaining headroom is spread
over the additions (largest first) up to each ingredient's catalog maximum.
The filler order decides which ingredients are chosen when budget is scarce;
changing it changes output for existing users.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from formula_core.catalog import CatalogError, IngredientCatalog, get_default_catalog
from formula_core.config import MIN_INGREDIENT_COUNT
from formula_core.evaluation.budget import capsule_budget
from formula_core.models import CandidateFormula, ExpansionResult, FormulaLine, LineRole
from formula_core.normalization import NameNormalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Filler:
    name: str
    min_dose: int
    normal_dose: int
    purpose: str = ""


FILLER_INGREDIENTS: tuple[Filler, ...] = (
    Filler("Garlic", 50, 150, "Supports cardiovascular health and healthy cholesterol levels."),
    Filler("Resveratrol", 50, 150, "Antioxidant support for endothelial function and healthy aging."),
    Filler("Ginkgo Biloba Extract 24%", 40, 120, "Supports circulation and cognitive function."),
    Filler("Milk Thistle", 100, 150, "Supports liver health and detoxification pathways."),
    Filler("Ginger Root", 75, 150, "Supports digestion and healthy inflammatory response."),
    Filler("Vitamin C", 100, 200, "Antioxidant supporting immune function and collagen synthesis."),
    Filler("CoEnzyme Q10", 200, 200, "Supports mitochondrial energy production and heart health."),
    Filler("Hawthorn Berry", 100, 200, "Traditional cardiovascular support."),
    Filler("Cinnamon 20:1", 25, 100, "Supports healthy blood sugar metabolism."),
    Filler("Magnesium", 100, 200, "Supports muscle relaxation, energy production and the nervous system."),
)


def _check_fillers(catalog: IngredientCatalog, fillers: tuple[Filler, ...]) -> None:
    for filler in fillers:
        entry = catalog.get(filler.name)
        if entry is None or entry.is_bundle:
            raise CatalogError(f"Filler {filler.name!r} is not an adjustable catalog ingredient")
        if not (0 < filler.min_dose <= filler.normal_dose):
            raise CatalogError(f"Filler {filler.name!r} needs 0 < min_dose <= normal_dose")
        for dose in (filler.min_dose, filler.normal_dose):
            if not entry.allows_dose(dose):
                raise CatalogError(
                    f"Filler {filler.name!r} dose {dose}mg outside catalog range "
                    f"{entry.dose_range_min}-{entry.dose_range_max}mg"
                )


class FormulaExpander:
    """Adds filler additions in place. Fillers are checked against the catalog at construction."""

    def __init__(
        self,
        catalog: Optional[IngredientCatalog] = None,
        normalizer: Optional[NameNormalizer] = None,
        fillers: tuple[Filler, ...] = FILLER_INGREDIENTS,
    ):
        self._catalog = catalog or get_default_catalog()
        self._normalizer = normalizer or NameNormalizer(self._catalog)
        _check_fillers(self._catalog, fillers)
        self._fillers = fillers

    def _present_names(self, formula: CandidateFormula) -> set[str]:
        names: set[str] = set()
        for name in formula.ingredient_names():
            names.add(name.strip().lower())
            names.add(self._normalizer.normalize(name).lower())
        return names

    def _fill(
        self,
        formula: CandidateFormula,
        use_min_dose: bool,
        needed: int,
        budget_left: float,
        present: set[str],
        added: list[str],
    ) -> float:
        for filler in self._fillers:
            if len(added) >= needed:
                break
            dose = filler.min_dose if use_min_dose else filler.normal_dose
            if budget_left < dose or filler.name.lower() in present:
                continue
            formula.additions.append(
                FormulaLine(ingredient_name=filler.name, amount_mg=dose, role=LineRole.ADDITION, purpose=filler.purpose)
            )
            added.append(f"{filler.name} {dose}mg")
            present.add(filler.name.lower())
            budget_left -= dose
        return budget_left

    def _redistribute(self, formula: CandidateFormula, headroom: float) -> float:
        used = 0.0
        # sorted() is stable: equal doses keep their position in additions
        for line in sorted(formula.additions, key=lambda l: l.amount_mg, reverse=True):
            if used >= headroom:
                break
            entry = self._normalizer.resolve(line.ingredient_name)
            if entry is None or entry.is_bundle or not entry.has_range:
                continue
            can_increase = entry.dose_range_max - line.amount_mg
            if can_increase <= 0:
                continue
            increase = min(can_increase, headroom - used)
            line.amount_mg += increase
            used += increase
        return used

    def expand(self, formula: CandidateFormula) -> ExpansionResult:
        needed = MIN_INGREDIENT_COUNT - formula.ingredient_count()
        if needed <= 0:
            return ExpansionResult(expanded=False, added_ingredients=[])

        budget = capsule_budget(formula.target_capsules)
        budget_left = budget.max_with_tolerance_mg - formula.computed_total_mg()
        present = self._present_names(formula)
        added: list[str] = []

        budget_left = self._fill(formula, False, needed, budget_left, present, added)
        if len(added) < needed:
            self._fill(formula, True, needed, budget_left, present, added)

        total = formula.computed_total_mg()
        raised = 0.0
        if total < budget.max_dosage_mg:
            raised = self._redistribute(formula, budget.max_with_tolerance_mg - total)

        formula.recompute_total()
        logger.info(
            "FORMULA_EXPAND needed=%d added=%d headroom_used=%s total_mg=%s budget=%d capsules=%d",
            needed, len(added), raised, formula.total_mg, budget.max_with_tolerance_mg, budget.capsule_count,
        )
        return ExpansionResult(expanded=bool(added), added_ingredients=added)


_default_expander: Optional[FormulaExpander] = None


def expand_formula(formula: CandidateFormula) -> ExpansionResult:
    """Expand against the default catalog."""
    global _default_expander
    if _default_expander is None:
        _default_expander = FormulaExpander()
    return _default_expander.expand(formula)
