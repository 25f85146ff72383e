"""
Deterministic ingredient-name normalization. No LLM, no fuzzy matching.
Resolves free-text names proposed by the AI to one canonical catalog name.

Order, first match wins:
  1. alias table (case-insensitive)
  2. catalog canonical names (case-insensitive)
  3. strip qualifiers (PE potency suffixes, percentage tokens, parenthetical
     descriptors) and repeat 1-2 on the stripped string
  4. return the stripped string; validation flags it as unapproved

Stripping only runs after exact lookups fail: canonical names such as
"Ginkgo Biloba Extract 24%" or "Cinnamon 20:1" contain qualifier-like text.
"""
import re
import logging
from typing import Optional

from formula_core.catalog import CatalogEntry, CatalogError, IngredientCatalog, get_default_catalog

logger = logging.getLogger(__name__)

# Known synonyms and misspellings seen in AI output (lowercased key -> canonical catalog name)
KNOWN_ALIASES: dict[str, str] = {
    # CoQ10
    "coq10": "CoEnzyme Q10",
    "co q10": "CoEnzyme Q10",
    "co-q10": "CoEnzyme Q10",
    "coenzyme q-10": "CoEnzyme Q10",
    "ubiquinone": "CoEnzyme Q10",
    # Omega-3
    "omega 3": "Omega-3",
    "omega3": "Omega-3",
    "omega-3 fatty acids": "Omega-3",
    "fish oil": "Omega-3",
    "algae omega": "Omega-3",
    # Spellings carried over from older catalogs
    "ahswaganda": "Ashwagandha",
    "ashwaganda": "Ashwagandha",
    "black currant extract": "Blackcurrant Extract",
    "broccoli powder": "Broccoli Concentrate",
    "sumar root": "Suma Root",
    "ginko biloba extract 24%": "Ginkgo Biloba Extract 24%",
    "ginko biloba": "Ginkgo Biloba Extract 24%",
    "ginkgo biloba": "Ginkgo Biloba Extract 24%",
    "ginkgo biloba extract": "Ginkgo Biloba Extract 24%",
    "saw palmetto": "Saw Palmetto Extract",
    "saw palmetto extract fatty acid": "Saw Palmetto Extract",
    "turmeric": "Turmeric Root Extract 4:1",
    "turmeric root extract": "Turmeric Root Extract 4:1",
    "cinnamon": "Cinnamon 20:1",
    "lion's mane": "Lions Mane",
    "lions mane mushroom": "Lions Mane",
    "cat's claw": "Cats Claw",
    "l theanine": "L-Theanine",
    "theanine": "L-Theanine",
    "nicotinamide mononucleotide": "NMN",
    "garlic powder": "Garlic",
    "hawthorn": "Hawthorn Berry",
}

# Qualifiers that are never part of a canonical name
QUALIFIER_PATTERNS = [
    # Potency / extraction-ratio suffix: "Hawthorn Berry PE 1/8% Flavones"
    re.compile(r"\s+PE\s+\S*\d.*$"),
    # Parenthetical source descriptor: "(soy)", "(algae omega)"
    re.compile(r"\s*\([^)]*\)"),
    # Bare percentage token: "40%", ".6%", "24 %"
    re.compile(r"\s*(?<![\w.])\d*\.?\d+\s*%"),
]


def _lookup_key(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip()).lower()


def strip_qualifiers(name: str) -> str:
    """Remove qualifier patterns and collapse whitespace. Case is preserved."""
    out = name or ""
    for pattern in QUALIFIER_PATTERNS:
        out = pattern.sub("", out)
    return re.sub(r"\s+", " ", out).strip(" ,;-")


class NameNormalizer:
    """
    Name resolution against one catalog. Alias targets are checked at construction;
    a target missing from the catalog raises CatalogError.
    """

    def __init__(
        self,
        catalog: Optional[IngredientCatalog] = None,
        aliases: Optional[dict[str, str]] = None,
    ):
        self._catalog = catalog or get_default_catalog()
        self._aliases: dict[str, str] = {}
        for alias, target in (aliases if aliases is not None else KNOWN_ALIASES).items():
            entry = self._catalog.get(target)
            if entry is None:
                logger.error("NORMALIZER alias target not in catalog alias=%s target=%s", alias, target)
                raise CatalogError(f"Alias {alias!r} points to unknown catalog entry {target!r}")
            self._aliases[_lookup_key(alias)] = entry.name

    @property
    def catalog(self) -> IngredientCatalog:
        return self._catalog

    def _exact(self, text: str) -> Optional[str]:
        key = _lookup_key(text)
        if not key:
            return None
        if key in self._aliases:
            return self._aliases[key]
        entry = self._catalog.get(key)
        return entry.name if entry else None

    def normalize(self, name: str) -> str:
        """
        Canonical catalog name, or the qualifier-stripped input when nothing matches.
        Never raises.
        """
        if not name or not isinstance(name, str):
            return ""
        cleaned = re.sub(r"\s+", " ", name).strip()
        found = self._exact(cleaned)
        if found:
            if found != cleaned:
                logger.debug("NORMALIZE exact raw=%s -> canonical=%s", cleaned, found)
            return found
        stripped = strip_qualifiers(cleaned)
        if stripped and stripped != cleaned:
            found = self._exact(stripped)
            if found:
                logger.debug("NORMALIZE stripped raw=%s -> canonical=%s", cleaned, found)
                return found
        logger.info("UNKNOWN_INGREDIENT raw=%s stripped=%s", cleaned, stripped)
        return stripped

    def resolve(self, name: str) -> Optional[CatalogEntry]:
        """Catalog entry for a free-text name, or None if unapproved."""
        return self._catalog.get(self.normalize(name))


_default_normalizer: Optional[NameNormalizer] = None


def get_default_normalizer() -> NameNormalizer:
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = NameNormalizer()
    return _default_normalizer


def normalize_ingredient_name(name: str) -> str:
    """Normalize against the default catalog."""
    return get_default_normalizer().normalize(name)
