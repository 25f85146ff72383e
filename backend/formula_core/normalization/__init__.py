from .normalizer import (
    KNOWN_ALIASES,
    NameNormalizer,
    get_default_normalizer,
    normalize_ingredient_name,
    strip_qualifiers,
)

__all__ = [
    "KNOWN_ALIASES",
    "NameNormalizer",
    "get_default_normalizer",
    "normalize_ingredient_name",
    "strip_qualifiers",
]
