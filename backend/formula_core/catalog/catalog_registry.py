"""
Approved ingredient catalog. Loads from data/catalog.json once at process start.
Lookup by case-insensitive canonical name only; aliases and qualifier stripping
live in the name normalizer.
"""
from pathlib import Path
from typing import Optional
import json
import logging

from .catalog_schema import CatalogEntry, EntryKind
from formula_core.config import get_catalog_path

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Catalog data (or data validated against it) is missing or inconsistent."""


def _key(name: str) -> str:
    return (name or "").strip().lower()


def _check_entry(entry: CatalogEntry) -> None:
    if entry.dose_mg <= 0:
        raise CatalogError(f"Catalog entry {entry.name!r} has non-positive dose {entry.dose_mg}")
    if entry.is_bundle:
        if not entry.dose_multiples or any(k < 1 for k in entry.dose_multiples):
            raise CatalogError(f"Bundle {entry.name!r} has invalid dose multiples {entry.dose_multiples}")
        return
    lo, hi = entry.dose_range_min, entry.dose_range_max
    if (lo is None) != (hi is None):
        raise CatalogError(f"Adjustable {entry.name!r} must define both doseRangeMin and doseRangeMax")
    if lo is not None and not (lo <= entry.dose_mg <= hi):
        raise CatalogError(
            f"Adjustable {entry.name!r} violates doseRangeMin <= doseMg <= doseRangeMax "
            f"({lo} <= {entry.dose_mg} <= {hi})"
        )


class IngredientCatalog:
    """
    O(1) lookup by lowercased canonical name.
    Read-only after construction; safe to share between concurrent requests.
    """

    def __init__(self, catalog_path: Optional[Path] = None, entries: Optional[list[CatalogEntry]] = None):
        self._path = catalog_path or get_catalog_path()
        self._by_key: dict[str, CatalogEntry] = {}
        self._ordered: list[CatalogEntry] = []
        self._version: str = "0"
        if entries is not None:
            self._index(entries)
            logger.info("Loaded %d catalog entries from memory", len(self._ordered))
        else:
            self._load()

    def _load(self) -> None:
        if not self._path.exists():
            logger.error("CATALOG_LOAD missing file path=%s", self._path)
            raise CatalogError(f"Catalog file not found at {self._path}")
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        self._version = str(data.get("catalog_version", "0"))
        entries = [CatalogEntry.from_dict(item) for item in data.get("entries", [])]
        self._index(entries)
        logger.info(
            "Loaded %d catalog entries (%d bundles, %d adjustable) version=%s from %s",
            len(self._ordered), len(self.bundles()), len(self.adjustables()), self._version, self._path,
        )

    def _index(self, entries: list[CatalogEntry]) -> None:
        for entry in entries:
            _check_entry(entry)
            key = _key(entry.name)
            if key in self._by_key:
                logger.error("CATALOG_LOAD duplicate name=%s", entry.name)
                raise CatalogError(f"Duplicate catalog name: {entry.name!r}")
            self._by_key[key] = entry
            self._ordered.append(entry)

    def get(self, name: str) -> Optional[CatalogEntry]:
        """Exact case-insensitive match on canonical name. None when not approved."""
        return self._by_key.get(_key(name))

    def contains(self, name: str) -> bool:
        return _key(name) in self._by_key

    def entries(self) -> list[CatalogEntry]:
        return list(self._ordered)

    def bundles(self) -> list[CatalogEntry]:
        return [e for e in self._ordered if e.kind == EntryKind.FIXED_BUNDLE]

    def adjustables(self) -> list[CatalogEntry]:
        return [e for e in self._ordered if e.kind == EntryKind.ADJUSTABLE]

    def names(self) -> list[str]:
        return [e.name for e in self._ordered]

    def get_version(self) -> str:
        return self._version

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)


_default_catalog: Optional[IngredientCatalog] = None


def get_default_catalog() -> IngredientCatalog:
    """Process-wide catalog, loaded on first use."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = IngredientCatalog()
    return _default_catalog


def get_ingredient_dose(name: str) -> Optional[float]:
    entry = get_default_catalog().get(name)
    return entry.dose_mg if entry else None


def is_valid_ingredient(name: str) -> bool:
    return get_default_catalog().contains(name)
