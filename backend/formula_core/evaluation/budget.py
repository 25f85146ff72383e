"""
Capsule budget. Capsule count is a packaging choice: an unsupported count falls
back to the default for budget math and is only reported by strict validation.
"""
import math
from dataclasses import dataclass
from typing import Any, Optional

from formula_core.config import (
    BUDGET_TOLERANCE_PERCENT,
    CAPSULE_CAPACITY_MG,
    DEFAULT_CAPSULE_COUNT,
    VALID_CAPSULE_COUNTS,
)


@dataclass(frozen=True)
class CapsuleBudget:
    capsule_count: int
    max_dosage_mg: int
    max_with_tolerance_mg: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "capsuleCount": self.capsule_count,
            "maxDosageMg": self.max_dosage_mg,
            "maxWithToleranceMg": self.max_with_tolerance_mg,
        }


def is_valid_capsule_count(capsules: Optional[int]) -> bool:
    return capsules in VALID_CAPSULE_COUNTS


def resolve_capsule_count(capsules: Optional[int]) -> int:
    return capsules if is_valid_capsule_count(capsules) else DEFAULT_CAPSULE_COUNT


def max_dosage(capsules: Optional[int] = None) -> int:
    return resolve_capsule_count(capsules) * CAPSULE_CAPACITY_MG


def max_with_tolerance(capsules: Optional[int] = None) -> int:
    # Floor so the ceiling is a whole milligram: 9 capsules -> 4950 -> 5197
    return math.floor(max_dosage(capsules) * (1 + BUDGET_TOLERANCE_PERCENT))


def capsule_budget(capsules: Optional[int] = None) -> CapsuleBudget:
    count = resolve_capsule_count(capsules)
    return CapsuleBudget(
        capsule_count=count,
        max_dosage_mg=max_dosage(count),
        max_with_tolerance_mg=max_with_tolerance(count),
    )
