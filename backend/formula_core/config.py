"""
Formula limits, data paths, and centralized configuration.
All resolution relative to the repository root.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Repo root: backend/formula_core/config.py -> parent=formula_core, parent.parent=backend, parent.parent.parent=repo
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_REPO_ROOT = _BACKEND_DIR.parent

# --- Immutable formula limits (not overridable by env, user requests or AI output) ---
CAPSULE_CAPACITY_MG = 550
VALID_CAPSULE_COUNTS = (6, 9, 12)
DEFAULT_CAPSULE_COUNT = 9
BUDGET_TOLERANCE_PERCENT = 0.05
MIN_INGREDIENT_DOSE_MG = 10
MIN_INGREDIENT_COUNT = 8
MAX_INGREDIENT_COUNT = 50
# System supports may only be taken as whole multiples of their fixed dose
BUNDLE_DOSE_MULTIPLES = (1, 2, 3)

# --- Feature flags ---
AUTO_EXPAND_ENABLED = os.environ.get("FORMULA_AUTO_EXPAND", "true").lower() in ("1", "true", "yes")


# --- Data paths ---
def get_catalog_path() -> Path:
    override = os.environ.get("FORMULA_CATALOG_PATH", "").strip()
    if override:
        return Path(override)
    return _REPO_ROOT / "data" / "catalog.json"


def get_interactions_path() -> Path:
    override = os.environ.get("FORMULA_INTERACTIONS_PATH", "").strip()
    if override:
        return Path(override)
    return _REPO_ROOT / "data" / "interactions.json"


# --- Startup logging ---
def log_config() -> None:
    logger.info(
        "CONFIG: catalog=%s interactions=%s capsule_capacity=%dmg capsule_counts=%s default_capsules=%d "
        "tolerance=%.2f ingredient_count=%d-%d auto_expand=%s",
        get_catalog_path().exists(), get_interactions_path().exists(),
        CAPSULE_CAPACITY_MG, list(VALID_CAPSULE_COUNTS), DEFAULT_CAPSULE_COUNT,
        BUDGET_TOLERANCE_PERCENT, MIN_INGREDIENT_COUNT, MAX_INGREDIENT_COUNT,
        AUTO_EXPAND_ENABLED,
    )
