from .interaction_schema import CombinationRule, InteractionRule
from .screener import (
    INTERACTION_DISCLAIMER,
    InteractionScreener,
    get_default_screener,
    load_combination_rules,
    load_interaction_rules,
    screen_combinations,
    screen_interactions,
)

__all__ = [
    "CombinationRule",
    "INTERACTION_DISCLAIMER",
    "InteractionRule",
    "InteractionScreener",
    "get_default_screener",
    "load_combination_rules",
    "load_interaction_rules",
    "screen_combinations",
    "screen_interactions",
]
