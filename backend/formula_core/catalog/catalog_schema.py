"""
Strict contract for approved catalog entries.
Two kinds: fixed-dose bundles ("system supports") and adjustable single ingredients.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from formula_core.config import BUNDLE_DOSE_MULTIPLES


class EntryKind(str, Enum):
    FIXED_BUNDLE = "fixed-bundle"
    ADJUSTABLE = "adjustable"


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    kind: EntryKind
    dose_mg: float
    # Adjustable only: inclusive bounds the dose may be set to
    dose_range_min: Optional[float] = None
    dose_range_max: Optional[float] = None
    # Bundles only: whole multiples of dose_mg the source data documents
    dose_multiples: tuple[int, ...] = BUNDLE_DOSE_MULTIPLES
    category: str = ""
    description: str = ""

    @property
    def is_bundle(self) -> bool:
        return self.kind == EntryKind.FIXED_BUNDLE

    @property
    def has_range(self) -> bool:
        return self.dose_range_min is not None and self.dose_range_max is not None

    def allowed_doses(self) -> list[float]:
        """Discrete doses a bundle may be taken at. Empty for adjustable entries."""
        if not self.is_bundle:
            return []
        return [self.dose_mg * k for k in self.dose_multiples]

    def allows_dose(self, amount_mg: float) -> bool:
        if self.is_bundle:
            return amount_mg in self.allowed_doses()
        if not self.has_range:
            return True
        return self.dose_range_min <= amount_mg <= self.dose_range_max

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "kind": self.kind.value,
            "doseMg": self.dose_mg,
            "category": self.category,
            "description": self.description,
        }
        if self.is_bundle:
            d["doseMultiples"] = list(self.dose_multiples)
        else:
            d["doseRangeMin"] = self.dose_range_min
            d["doseRangeMax"] = self.dose_range_max
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "CatalogEntry":
        kind = d.get("kind", EntryKind.ADJUSTABLE.value)
        if isinstance(kind, str):
            kind = EntryKind(kind)
        multiples = d.get("doseMultiples") or BUNDLE_DOSE_MULTIPLES
        return cls(
            name=d["name"].strip(),
            kind=kind,
            dose_mg=d["doseMg"],
            dose_range_min=d.get("doseRangeMin"),
            dose_range_max=d.get("doseRangeMax"),
            dose_multiples=tuple(int(k) for k in multiples),
            category=d.get("category", "") or "",
            description=d.get("description", "") or "",
        )

