from .catalog_schema import CatalogEntry, EntryKind
from .catalog_registry import (
    CatalogError,
    IngredientCatalog,
    get_default_catalog,
    get_ingredient_dose,
    is_valid_ingredient,
)

__all__ = [
    "CatalogEntry",
    "EntryKind",
    "CatalogError",
    "IngredientCatalog",
    "get_default_catalog",
    "get_ingredient_dose",
    "is_valid_ingredient",
]
